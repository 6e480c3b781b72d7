"""
After-Counter - Main Entry Point

Runs a battle scenario with the counter extension installed and prints the
battle log.

    python -m src.main scenario.json --seed 42 --turns 5
"""

import sys
from pathlib import Path

# Add the project root to the Python path for module discovery
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import argparse
import logging
from dataclasses import dataclass
from typing import Optional

from src.combat import BattleManager, ScenarioError, load_scenario
from src.counter import CounterConfig, install_counter_extension
from src.data_models import DiceRoller
from src.observability import get_run_log, reset_run_log


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class BattleConfig:
    """Configuration for one battle run."""

    scenario_path: Path
    seed: Optional[int] = None
    max_turns: int = 20

    # Counter overrides; None keeps the scenario's (or the default) value
    tag_name: Optional[str] = None
    message_text: Optional[str] = None

    # Output
    run_log_path: Optional[Path] = None
    show_run_log: bool = False
    verbose: bool = False

    def __post_init__(self):
        """Ensure paths are Path objects."""
        if isinstance(self.scenario_path, str):
            self.scenario_path = Path(self.scenario_path)
        if isinstance(self.run_log_path, str):
            self.run_log_path = Path(self.run_log_path)
        if self.max_turns < 1:
            raise ValueError("max_turns must be at least 1")

    def counter_config(self, scenario_params: dict) -> CounterConfig:
        """Scenario counter parameters with command-line overrides applied."""
        params = dict(scenario_params)
        if self.tag_name is not None:
            params["tagName"] = self.tag_name
        if self.message_text is not None:
            params["msg_format"] = self.message_text
        return CounterConfig.from_parameters(params)


# =============================================================================
# BATTLE RUN
# =============================================================================


def run_battle(config: BattleConfig) -> BattleManager:
    """Load the scenario, install the counter extension and fight."""
    reset_run_log()
    if config.seed is not None:
        DiceRoller.set_seed(config.seed)
        get_run_log().set_seed(config.seed)

    scenario = load_scenario(config.scenario_path)
    manager = scenario.build_manager()
    install_counter_extension(manager, config.counter_config(scenario.counter_params))

    manager.run_battle(max_turns=config.max_turns)

    if config.run_log_path:
        get_run_log().save(str(config.run_log_path))
    return manager


def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="After-Counter - run a battle with counter rules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src.main battle.json                   # Run a scenario
  python -m src.main battle.json --seed 7          # Reproducible rate rolls
  python -m src.main battle.json --message ""      # No counter message
  python -m src.main battle.json --run-log out.json
        """
    )

    parser.add_argument(
        "scenario",
        type=Path,
        help="Battle scenario JSON file",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for activation rolls",
    )
    parser.add_argument(
        "--turns",
        type=int,
        default=20,
        help="Maximum number of turns (default: 20)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    counter_group = parser.add_argument_group("Counter Options")
    counter_group.add_argument(
        "--tag-name",
        type=str,
        default=None,
        help="Note tag for counter declarations (default: CounterExt)",
    )
    counter_group.add_argument(
        "--message",
        type=str,
        default=None,
        help="Battle log text when a counter starts; empty disables it",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--run-log",
        type=Path,
        default=None,
        help="Write the run log as JSON to this file",
    )
    output_group.add_argument(
        "--show-run-log",
        action="store_true",
        help="Print the run log after the battle log",
    )

    return parser.parse_args(argv)


def create_config_from_args(args: argparse.Namespace) -> BattleConfig:
    """Create BattleConfig from parsed arguments."""
    return BattleConfig(
        scenario_path=args.scenario,
        seed=args.seed,
        max_turns=args.turns,
        tag_name=args.tag_name,
        message_text=args.message,
        run_log_path=args.run_log,
        show_run_log=args.show_run_log,
        verbose=args.verbose,
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI usage."""
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    try:
        config = create_config_from_args(args)
        manager = run_battle(config)
    except (ScenarioError, ValueError, OSError) as e:
        logger.error(f"Battle failed: {e}")
        return 1

    print(manager.log.text())
    summary = manager.get_battle_summary()
    print("=" * 60)
    print(f"Turns: {summary['turns']}  Actions: {summary['actions']}  Counters: {summary['counters']}")
    print(f"Winner: {summary['winner'] or 'undecided'}")
    if config.show_run_log:
        print(get_run_log().format_log())
    return 0


if __name__ == "__main__":
    sys.exit(main())
