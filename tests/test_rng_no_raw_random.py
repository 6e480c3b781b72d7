"""
Tests for the RNG determinism contract.

Battle mechanics must draw randomness through DiceRoller so a seeded run
is reproducible. This scans the battle and counter packages for direct use
of the random module.
"""

import re
from pathlib import Path

import pytest


SRC_ROOT = Path(__file__).parent.parent / "src"

# Packages whose modules must not import random directly
MECHANICS_PACKAGES = ["combat", "counter"]

RAW_RANDOM_PATTERN = re.compile(r"^\s*(import random\b|from random import)", re.MULTILINE)


def _mechanics_modules() -> list[Path]:
    modules = []
    for package in MECHANICS_PACKAGES:
        modules.extend(sorted((SRC_ROOT / package).glob("*.py")))
    return modules


@pytest.mark.parametrize("module", _mechanics_modules(), ids=lambda p: f"{p.parent.name}/{p.name}")
def test_module_does_not_import_random(module):
    source = module.read_text(encoding="utf-8")
    assert not RAW_RANDOM_PATTERN.search(source), (
        f"{module.name} imports random directly; use DiceRoller instead"
    )


def test_mechanics_modules_found():
    """Guard against the scan silently covering nothing."""
    names = {p.name for p in _mechanics_modules()}
    assert "resolver.py" in names
    assert "battle_manager.py" in names
