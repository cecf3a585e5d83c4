import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from sqlweave.exceptions import ImproperConfigurationError
from sqlweave.utils.ids import get_default_generator
from sqlweave.utils.logging import configure_logging

if TYPE_CHECKING:
    from sqlweave.utils.ids import IdGenerator

__all__ = ("DEBUG_LEVELS", "ServiceConfig")

DEBUG_LEVELS = (0, 1, 2, 3)
LOG_FORMATS = ("structured", "simple")


@dataclass
class ServiceConfig:
    """Settings consumed by :class:`~sqlweave.service.RelationalService`.

    Attributes:
        debug_level: Query echo level; 0 disables it, 1 logs SQL, 2 adds the
            arguments and 3 pretty-prints the SQL.
        id_generator: Identifier source for inserts; the process-wide
            snowflake generator when ``None``.
        log_level: Logging level name the query echo is emitted at.
        log_format: When set, ``"structured"`` (JSON) or ``"simple"``; the
            ``sqlweave`` loggers are then configured at ``log_level`` with a
            stdout handler in that format. Left untouched when ``None``.
    """

    debug_level: int = 0
    id_generator: "Optional[IdGenerator]" = None
    log_level: str = "INFO"
    log_format: "Optional[str]" = None

    def __post_init__(self) -> None:
        if self.debug_level not in DEBUG_LEVELS:
            msg = f"debug_level must be one of {DEBUG_LEVELS}, got {self.debug_level!r}"
            raise ImproperConfigurationError(msg)
        if self.log_format is not None:
            if self.log_format not in LOG_FORMATS:
                msg = f"log_format must be one of {LOG_FORMATS}, got {self.log_format!r}"
                raise ImproperConfigurationError(msg)
            configure_logging(level=logging.getLevelName(self.echo_level), format_style=self.log_format)

    @property
    def echo_level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            msg = f"unknown log level {self.log_level!r}"
            raise ImproperConfigurationError(msg)
        return level

    def resolve_id_generator(self) -> "IdGenerator":
        return self.id_generator or get_default_generator()
