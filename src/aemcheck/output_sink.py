"""Output sink for verification messages.

Every component reports through one sink instead of writing output itself.
Messages use str.format positional placeholders ("{0}") with positional args.

Message classes:
- host: user-visible, optionally colored, optionally without trailing newline
- verbose: trace output, only shown when verbose output is enabled
- warning: best-effort fallbacks that operators should know about
- error: user-facing failures; also marks the run as failed

Public API:
    OutputSink: Protocol implemented by all sinks
    ConsoleSink: rich Console implementation used by the CLI
"""

import logging
from typing import Protocol

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)


def format_message(message: str, *args: object) -> str:
    """Apply positional args to a message, tolerating messages without placeholders."""
    if not args:
        return message
    try:
        return message.format(*args)
    except (IndexError, KeyError, ValueError):
        return " ".join([message, *(str(a) for a in args)])


class OutputSink(Protocol):
    """Capability interface for reporting verification progress and results."""

    # Set once error() has been called
    failed: bool

    def host(
        self, message: str, *args: object, new_line: bool = True, color: str | None = None
    ) -> None: ...

    def verbose(self, message: str, *args: object) -> None: ...

    def warning(self, message: str, *args: object) -> None: ...

    def error(self, message: str, *args: object) -> None: ...


class ConsoleSink:
    """Render sink messages on the terminal using rich.

    Host messages go to stdout, warnings and errors to stderr. Every message is
    also mirrored to the module logger so runs can be diagnosed from logs.
    """

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        verbose: bool = False,
    ) -> None:
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self.show_verbose = verbose
        self.failed = False

    def host(
        self, message: str, *args: object, new_line: bool = True, color: str | None = None
    ) -> None:
        text = format_message(message, *args)
        logger.debug("host: %s", text)
        # Host messages are echoed to the verbose channel as well
        self.verbose(message, *args)
        try:
            self.console.print(
                escape(text), style=color, end="\n" if new_line else "", soft_wrap=True
            )
        except Exception as e:
            logger.debug(f"Failed to write host message: {e}")

    def verbose(self, message: str, *args: object) -> None:
        text = format_message(message, *args)
        logger.debug("verbose: %s", text)
        if not self.show_verbose:
            return
        try:
            self.err_console.print(f"[dim]VERBOSE: {escape(text)}[/dim]", soft_wrap=True)
        except Exception as e:
            logger.debug(f"Failed to write verbose message: {e}")

    def warning(self, message: str, *args: object) -> None:
        text = format_message(message, *args)
        logger.debug("warning: %s", text)
        try:
            self.err_console.print(f"[yellow]WARNING: {escape(text)}[/yellow]", soft_wrap=True)
        except Exception as e:
            logger.debug(f"Failed to write warning message: {e}")

    def error(self, message: str, *args: object) -> None:
        text = format_message(message, *args)
        self.failed = True
        logger.debug("error: %s", text)
        try:
            self.err_console.print(f"[red]ERROR: {escape(text)}[/red]", soft_wrap=True)
        except Exception as e:
            logger.debug(f"Failed to write error message: {e}")


__all__ = ["ConsoleSink", "OutputSink", "format_message"]
