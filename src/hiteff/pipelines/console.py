from __future__ import annotations
from threading import Lock

# One lock for every worker that writes to stdout.
_CONSOLE_LOCK = Lock()


def echo(msg: str, *, level: int = 1, diagnostics_level: int = 1) -> None:
    """Print `msg` when diagnostics_level >= level, never interleaving lines across threads."""
    if diagnostics_level < level:
        return
    with _CONSOLE_LOCK:
        print(msg, flush=True)


class Console:
    """Tagged printer bound to one component and a diagnostics level."""

    def __init__(self, tag: str, diagnostics_level: int = 1):
        self.tag = tag
        self.diagnostics_level = diagnostics_level

    def __call__(self, msg: str, level: int = 1) -> None:
        echo(f"[{self.tag}] {msg}", level=level, diagnostics_level=self.diagnostics_level)

    def raw(self, msg: str, level: int = 1) -> None:
        echo(msg, level=level, diagnostics_level=self.diagnostics_level)
