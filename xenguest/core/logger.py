# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/core/logger.py
"""
Agent logging.

Everything logs under the "xenguest" logger; features use child loggers
(xenguest.FeatureIPSetting) and share its sink. Log.setup() prefers the local
syslog socket and falls back to colored stderr output when the socket cannot
be opened. Per-VIF context travels as `extra={"ctx": {...}}` (see Log.bind)
and is rendered as a trailing "k=v" suffix by both formatters.
"""
from __future__ import annotations

import datetime as _dt
import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from termcolor import colored as _colored

TRACE = 5
if not hasattr(logging, "TRACE"):
    logging.TRACE = TRACE  # type: ignore[attr-defined]
    logging.addLevelName(TRACE, "TRACE")

DEFAULT_LOGGER_NAME = "xenguest"
SYSLOG_ADDRESS = "/dev/log"

_LEVEL_EMOJI = {
    "TRACE": "🧬",
    "DEBUG": "🔍",
    "INFO": "✅",
    "WARNING": "⚠️",
    "ERROR": "💥",
    "CRITICAL": "🧨",
}
_LEVEL_COLOR = {
    "TRACE": "cyan",
    "DEBUG": "blue",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red",
}

Ctx = Mapping[str, Any]


def _is_tty() -> bool:
    isatty = getattr(sys.stderr, "isatty", None)
    return bool(isatty and isatty())


def _stderr_takes_emoji() -> bool:
    try:
        "✅".encode(getattr(sys.stderr, "encoding", None) or "utf-8")
    except (UnicodeEncodeError, LookupError):
        return False
    return True


def c(
    text: str,
    color: Optional[str] = None,
    attrs: Optional[List[str]] = None,
    *,
    enable: bool = True,
) -> str:
    """Colorize text when enabled."""
    if not enable or not color:
        return text
    return _colored(text, color=color, attrs=attrs or [])


def _ctx_suffix(ctx: Optional[Ctx]) -> str:
    if not ctx:
        return ""
    parts = (f"{k}={v}".replace("\n", "\\n") for k, v in sorted(ctx.items()))
    return " " + " ".join(parts)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Carries a persistent context dict; `extra={"ctx": {...}}` at the call site
    merges on top.

      log = Log.bind(logger, vif="xenserver/device/vif/0", family="v4")
      log.info("Set IP")    # ... Set IP family=v4 vif=xenserver/device/vif/0
    """

    def __init__(self, logger: logging.Logger, ctx: Optional[Ctx] = None):
        super().__init__(logger, extra={"ctx": dict(ctx or {})})

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
        extra = kwargs.get("extra") or {}
        extra["ctx"] = {**self.extra["ctx"], **(extra.get("ctx") or {})}
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **ctx: Any) -> "ContextLoggerAdapter":
        return ContextLoggerAdapter(self.logger, {**self.extra["ctx"], **ctx})

    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(TRACE, msg, *args, **kwargs)


@dataclass(frozen=True)
class LogStyle:
    color: bool = True
    detailed: bool = False  # milliseconds and logger name, used for log files and -vvv
    unicode: bool = True


class EmojiFormatter(logging.Formatter):
    """Console line: time, level emoji, padded level, message, context."""

    def __init__(self, style: LogStyle):
        super().__init__()
        self._style = style

    def format(self, record: logging.LogRecord) -> str:
        ts = _dt.datetime.fromtimestamp(record.created)
        stamp = ts.strftime("%H:%M:%S.%f")[:-3] if self._style.detailed else ts.strftime("%H:%M:%S")
        emoji = _LEVEL_EMOJI.get(record.levelname, "•") if self._style.unicode else "·"

        color_ok = self._style.color and _is_tty()
        color = _LEVEL_COLOR.get(record.levelname)
        lvl = c(f"{record.levelname:<8}", color, enable=color_ok)
        msg = record.getMessage()
        if record.levelno >= logging.WARNING:
            msg = c(msg, color, attrs=["bold"], enable=color_ok)

        where = f" [{record.name}]" if self._style.detailed else ""
        line = f"{stamp} {emoji} {lvl}{where} {msg}{_ctx_suffix(getattr(record, 'ctx', None))}"
        if record.exc_info:
            line += "\n" + "\n".join("  " + ln for ln in self.formatException(record.exc_info).splitlines())
        return line


class SyslogFormatter(logging.Formatter):
    """Single line "<tag>: <msg> k=v"; the syslog daemon adds timestamp and host."""

    def __init__(self, tag: str):
        super().__init__()
        self._tag = tag

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage() + _ctx_suffix(getattr(record, "ctx", None))
        return f"{self._tag}: {msg}" if self._tag else msg


class Log:
    @staticmethod
    def _level_from_flags(verbose: int, quiet: int) -> int:
        """
        quiet wins over verbose:
          -qq ERROR, -q WARNING, default/-v INFO, -vv DEBUG, -vvv TRACE
        """
        if quiet >= 2:
            return logging.ERROR
        if quiet == 1:
            return logging.WARNING
        if verbose >= 3:
            return TRACE
        if verbose >= 2:
            return logging.DEBUG
        return logging.INFO

    @staticmethod
    def bind(logger: logging.Logger, **ctx: Any) -> ContextLoggerAdapter:
        if isinstance(logger, ContextLoggerAdapter):
            return logger.bind(**ctx)
        return ContextLoggerAdapter(logger, ctx)

    @staticmethod
    def _ctx_extra(ctx: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return {"ctx": ctx} if ctx else None

    @staticmethod
    def step(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("➡️  %s", msg, extra=Log._ctx_extra(ctx))

    @staticmethod
    def ok(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("✅ %s", msg, extra=Log._ctx_extra(ctx))

    @staticmethod
    def warn(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.warning("⚠️  %s", msg, extra=Log._ctx_extra(ctx))

    @staticmethod
    def fail(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.error("💥 %s", msg, extra=Log._ctx_extra(ctx))

    @staticmethod
    def trace(logger: logging.Logger, msg: str, *args: Any, **ctx: Any) -> None:
        logger.log(TRACE, msg, *args, extra=Log._ctx_extra(ctx))

    @staticmethod
    def _syslog_handler(tag: str, address: str) -> Optional[logging.Handler]:
        """The local syslog sink, or None (reason printed to stderr) when it cannot be opened."""
        try:
            handler = logging.handlers.SysLogHandler(
                address=address,
                facility=logging.handlers.SysLogHandler.LOG_DAEMON,
            )
        except OSError as e:
            print(f"SysLogHandler({tag}) error: {e}, use stderr logging", file=sys.stderr)
            return None
        handler.setFormatter(SyslogFormatter(tag))
        return handler

    @staticmethod
    def _clear_handlers(logger: logging.Logger) -> None:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

    @staticmethod
    def setup(
        verbose: int = 0,
        log_file: Optional[str] = None,
        *,
        quiet: int = 0,
        syslog: bool = True,
        syslog_address: Optional[str] = None,
        logger_name: str = DEFAULT_LOGGER_NAME,
    ) -> logging.Logger:
        """
        (Re)configure the agent logger and return it.

        The primary sink is syslog unless syslog=False or the socket cannot be
        opened, in which case it is stderr. log_file adds an uncolored copy.
        Handlers carry no level of their own so a child logger raised to
        DEBUG (FeatureIPSetting debug=True) still gets through.
        """
        logger = logging.getLogger(logger_name)
        logger.propagate = False
        level = Log._level_from_flags(verbose, quiet)
        logger.setLevel(level)
        Log._clear_handlers(logger)

        primary: Optional[logging.Handler] = None
        if syslog:
            primary = Log._syslog_handler(logger_name, syslog_address or SYSLOG_ADDRESS)
        if primary is None:
            primary = logging.StreamHandler(stream=sys.stderr)
            primary.setFormatter(EmojiFormatter(LogStyle(detailed=verbose >= 3, unicode=_stderr_takes_emoji())))
        logger.addHandler(primary)

        if log_file:
            fp = Path(log_file).expanduser().resolve()
            fp.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(fp, encoding="utf-8")
            fh.setFormatter(EmojiFormatter(LogStyle(color=False, detailed=True)))
            logger.addHandler(fh)

        logger.debug("Logger initialized (level=%s, sink=%s)", logging.getLevelName(level), type(primary).__name__)
        return logger

    @staticmethod
    def feature_logger(name: str, parent: Optional[logging.Logger] = None) -> logging.Logger:
        """
        Child logger for one agent feature, e.g. xenguest.FeatureIPSetting.

        Without a parent, the "xenguest" logger is set up (syslog, then
        stderr) if nothing has configured it yet.
        """
        if parent is None:
            parent = logging.getLogger(DEFAULT_LOGGER_NAME)
            if not parent.handlers:
                Log.setup(logger_name=DEFAULT_LOGGER_NAME)
        return parent.getChild(name)
