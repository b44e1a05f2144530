"""structlog setup for slashkit.

Every slashkit module logs through ``structlog.get_logger("slashkit.<area>")``.
Those names are stdlib loggers underneath, so one record reaches three
places by propagation: the area's own rotating file, ``slashkit.log``,
and the console on the root logger.

    root                  console
      slashkit            logs/slashkit.log
        slashkit.bot      logs/bot.log
        slashkit.dispatch logs/dispatch.log
        slashkit.commands logs/commands.log
        slashkit.events   logs/events.log
        slashkit.modules  logs/modules.log
        slashkit.gateway  logs/gateway.log

Bot tokens and interaction webhook tokens are masked before rendering.
"""

import logging
import logging.handlers
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

SUBSYSTEMS = ("bot", "dispatch", "commands", "events", "modules", "gateway")

LOGGER_PREFIX = "slashkit"

MASK = "***REDACTED***"

_TOKEN_PATTERNS = (
    # <base64 user id>.<timestamp>.<hmac>
    re.compile(r"[A-Za-z0-9_-]{23,28}\.[A-Za-z0-9_-]{6,7}\.[A-Za-z0-9_-]{27,38}"),
    re.compile(r"Bot\s+[A-Za-z0-9_.-]{20,}"),
    re.compile(r"Bearer\s+[A-Za-z0-9_./-]{20,}"),
)
_WEBHOOK_URL = re.compile(r"(/webhooks/\d+/)[A-Za-z0-9_.-]{20,}")


def _mask(text: str) -> str:
    for pattern in _TOKEN_PATTERNS:
        text = pattern.sub(MASK, text)
    return _WEBHOOK_URL.sub(lambda m: m.group(1) + MASK, text)


def _mask_value(value: Any) -> Any:
    """Mask strings, one level into lists, tuples and dicts."""
    if isinstance(value, str):
        return _mask(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(v) if isinstance(v, str) else v for v in value)
    if isinstance(value, dict):
        return {k: _mask(v) if isinstance(v, str) else v for k, v in value.items()}
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor: mask tokens anywhere in the event dict."""
    for key in list(event_dict):
        event_dict[key] = _mask_value(event_dict[key])
    return event_dict


@dataclass
class _LogSettings:
    log_dir: Path = Path(__file__).parent.parent / "logs"
    level: int = logging.INFO
    subsystem_levels: Dict[str, str] = field(default_factory=dict)
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    cache_loggers: bool = False

    @classmethod
    def from_config(cls, config) -> "_LogSettings":
        return cls(
            log_dir=config.log_dir,
            level=_level(config.logging_level, logging.INFO),
            subsystem_levels=config.logging_subsystem_levels,
            max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
            backup_count=config.logging_backup_count,
            cache_loggers=True,
        )

    def level_for(self, subsystem: str) -> int:
        return _level(self.subsystem_levels.get(subsystem), self.level)


def _level(name: Optional[str], default: int) -> int:
    if not name:
        return default
    value = logging.getLevelName(str(name).upper())
    return value if isinstance(value, int) else default


def _file_handler(
    path: Path, level: int, settings: _LogSettings, formatter: logging.Formatter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _reset(name: Optional[str], level: int) -> logging.Logger:
    target = logging.getLogger(name)
    target.setLevel(level)
    target.handlers.clear()
    return target


def setup_logging(config=None) -> None:
    """Configure stdlib handlers and structlog.

    Called twice by the entry point: first with no config so import-time
    loggers work (loggers not cached), then with the loaded Config
    (levels, rotation and log directory from settings; loggers cached).
    A log directory that cannot be created leaves console logging only.
    """
    settings = _LogSettings.from_config(config) if config is not None else _LogSettings()

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        files = True
    except OSError as exc:
        print(
            f"WARNING: log directory {settings.log_dir} unavailable ({exc}); "
            "logging to console only.",
            file=sys.stderr,
        )
        files = False

    plain = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    root = _reset(None, logging.DEBUG)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(settings.level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root.addHandler(console)

    # discord.py logs every gateway frame at DEBUG
    logging.getLogger("discord").setLevel(max(settings.level, logging.INFO))

    package = _reset(LOGGER_PREFIX, logging.DEBUG)
    package.propagate = True
    if files:
        package.addHandler(
            _file_handler(settings.log_dir / "slashkit.log", settings.level, settings, plain)
        )

    for subsystem in SUBSYSTEMS:
        level = settings.level_for(subsystem)
        area = _reset(f"{LOGGER_PREFIX}.{subsystem}", level)
        area.propagate = True
        if files:
            area.addHandler(
                _file_handler(settings.log_dir / f"{subsystem}.log", level, settings, plain)
            )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.cache_loggers,
    )
