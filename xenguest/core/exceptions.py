# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/core/exceptions.py
"""
Agent error types.

`code` is the process exit status main() uses:

    1   generic failure
    2   configuration file unreadable or malformed
    20  xenstore access failed (fatal only for watch registration at startup)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_STORE = 20


def _single_line(text: str, limit: int = 400) -> str:
    flat = " ".join((text or "").split())
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."


@dataclass(eq=False)
class XenGuestError(Exception):
    code: int = EXIT_FAILURE
    msg: str = ""
    cause: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0 < self.code < 256:
            self.code = EXIT_FAILURE
        self.msg = _single_line(self.msg) or type(self).__name__
        super().__init__(self.msg)

    def with_context(self, **ctx: Any) -> "XenGuestError":
        self.context.update(ctx)
        return self

    def describe(self, verbose: int = 0) -> str:
        """Message, plus context at -v and the underlying cause at -vv."""
        parts = [self.msg]
        if verbose >= 1 and self.context:
            parts.append("[" + ", ".join(f"{k}={v!r}" for k, v in sorted(self.context.items())) + "]")
        if verbose >= 2 and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_single_line(str(self.cause))})")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.msg


class Fatal(XenGuestError):
    """Stops the agent; main() exits with `code`."""


@dataclass(eq=False)
class ConfigError(Fatal):
    code: int = EXIT_CONFIG
    path: str = ""

    def __post_init__(self) -> None:
        if self.path:
            self.context.setdefault("path", self.path)
        super().__post_init__()


@dataclass(eq=False)
class StoreError(XenGuestError):
    """
    A xenstore operation failed.

    Recoverable everywhere except watch registration at startup, where it is
    turned into FeatureStartError.
    """

    code: int = EXIT_STORE
    op: str = ""
    key: str = ""

    def __post_init__(self) -> None:
        if not self.msg and self.op:
            target = f" {self.key}" if self.key else ""
            self.msg = f"xenstore {self.op}{target} failed"
        if self.key:
            self.context.setdefault("key", self.key)
        super().__post_init__()


class FeatureStartError(Fatal):
    """A feature could not register its watch and never started."""


def wrap_store(op: str, key: str, exc: Optional[BaseException] = None, **context: Any) -> StoreError:
    return StoreError(op=op, key=key, cause=exc, context=context)


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    if isinstance(e, XenGuestError):
        return e.describe(verbose)
    text = _single_line(str(e)) or type(e).__name__
    return f"{type(e).__name__}: {text}" if verbose >= 2 else text
