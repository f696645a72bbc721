"""Utilities for sshinit."""

from sshinit.utils.console import ColorfulFormatter
from sshinit.utils.parser import parse_command
from sshinit.utils.shell import is_operator, needs_local_expansion, quote_arg, split_command
from sshinit.utils.validation import validate_host, validate_port, validate_username

__all__ = [
    "ColorfulFormatter",
    "is_operator",
    "needs_local_expansion",
    "parse_command",
    "quote_arg",
    "split_command",
    "validate_host",
    "validate_port",
    "validate_username",
]
