"""
Configuration for the counter extension.

A single CounterConfig is built at startup and handed to the rule parser,
the resolver and the scheduler. Plugin-style parameter names are accepted
so existing parameter sets can be loaded unchanged.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Union
import json
import logging
import re

logger = logging.getLogger(__name__)


DEFAULT_TAG_NAME = "CounterExt"
DEFAULT_MESSAGE_TEXT = "CounterAttack!"

# Base tag plus <Tag1> .. <Tag9>
MAX_TAG_VARIANTS = 9

_TAG_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class CounterConfig:
    """
    Options recognised by the counter extension.

    Attributes:
        tag_name: Note-tag prefix for rule declarations
        message_text: Shown in the battle log when a counter starts;
            empty disables the message
    """

    tag_name: str = DEFAULT_TAG_NAME
    message_text: str = DEFAULT_MESSAGE_TEXT

    def __post_init__(self):
        if not self.tag_name or not _TAG_NAME_PATTERN.match(self.tag_name):
            raise ValueError(f"Invalid counter tag name: {self.tag_name!r}")
        if self.message_text is None:
            object.__setattr__(self, "message_text", "")

    def tag_names(self) -> list[str]:
        """The base tag followed by its numbered variants, in read order."""
        return [self.tag_name] + [
            f"{self.tag_name}{i}" for i in range(1, MAX_TAG_VARIANTS + 1)
        ]

    @property
    def shows_message(self) -> bool:
        return bool(self.message_text)

    @classmethod
    def from_parameters(cls, params: Mapping[str, Any]) -> "CounterConfig":
        """
        Build a config from a parameter mapping.

        Accepts "tagName" / "tag_name" and "msg_format" / "messageText" /
        "message_text". A blank tag name falls back to the default; a blank
        message disables the counter message.
        """
        tag_name = (
            params.get("tagName")
            or params.get("tag_name")
            or DEFAULT_TAG_NAME
        )
        message_text = DEFAULT_MESSAGE_TEXT
        for key in ("msg_format", "messageText", "message_text"):
            if key in params:
                message_text = params[key] or ""
                break
        return cls(tag_name=str(tag_name).strip(), message_text=str(message_text))

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> "CounterConfig":
        """Load parameters from a JSON file."""
        with open(filepath, "r", encoding="utf-8") as f:
            params = json.load(f)
        if not isinstance(params, dict):
            raise ValueError(f"Counter parameters in {filepath} must be a JSON object")
        config = cls.from_parameters(params)
        logger.info(f"Counter config loaded from {filepath}: tag={config.tag_name}")
        return config
