from __future__ import annotations

from rich.console import Console

_DEBUG_LOG = False
_STDERR = Console(stderr=True, highlight=False, soft_wrap=True)


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def debug_log(message: str) -> None:
    """Print a debug line on stderr; stdout carries the status protocol."""
    if _DEBUG_LOG:
        _STDERR.print(f"[aozora debug] {message}", markup=False)


def stderr_console() -> Console:
    return _STDERR
