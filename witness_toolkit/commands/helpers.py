"""Shared command helpers and utilities."""

import sys
from typing import Callable, Optional

from rich import print as rprint

from witness_toolkit.shared.exceptions import (
    NonRetryableException,
    RetryableException,
)


def handle_command_error(
    error: Exception, show_usage_fn: Optional[Callable[[], None]] = None
) -> None:
    """
    Standard error handling for commands.

    Args:
        error: The exception that occurred
        show_usage_fn: Optional function to display usage instructions
    """
    if isinstance(error, ValueError):
        rprint(f"[red]Error:[/red] {str(error)}")
    elif isinstance(error, RetryableException):
        rprint(
            f"[yellow]{type(error).__name__} (retry later):[/yellow] "
            f"{error.message}"
        )
    elif isinstance(error, NonRetryableException):
        rprint(f"[red]{type(error).__name__}:[/red] {error.message}")
        for reason in getattr(error, "reasons", []):
            rprint(f"  - {reason}")
    else:
        rprint(f"[red]Unexpected error:[/red] {str(error)}")

    if show_usage_fn:
        show_usage_fn()

    sys.exit(1)
