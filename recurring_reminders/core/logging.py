# recurring_reminders/core/logging.py
import logging
import os
import sys
from datetime import datetime

LOGGER_PREFIX = 'recurring_reminders'

# Module-level default log level, can be changed by set_default_level()
_default_level: int = logging.INFO


class ColoredFormatter(logging.Formatter):
    """Tabular formatter: [time] [component] [level] message.

    Colors are dropped when use_colors is False (NO_COLOR set or stdout
    is not a terminal), which keeps cron and container logs clean.
    """

    COLORS = {
        'RESET': '\033[0m',
        'LIGHT_BLUE': '\033[94m',
        'WHITE': '\033[97m',
        'GREEN': '\033[92m',
        'GRAY': '\033[90m',
        'YELLOW': '\033[93m',
        'RED': '\033[91m',
        'BRIGHT_RED': '\033[1;91m',
    }

    LEVEL_COLORS = {
        'DEBUG': COLORS['GRAY'],
        'INFO': COLORS['GREEN'],
        'WARNING': COLORS['YELLOW'],
        'ERROR': COLORS['RED'],
        'CRITICAL': COLORS['BRIGHT_RED'],
    }

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors

    def _paint(self, text: str, color: str) -> str:
        if not self.use_colors:
            return text
        return f"{color}{text}{self.COLORS['RESET']}"

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')

        # 'recurring_reminders.scheduler.state' -> 'state'
        component = record.name.split('.')[-1] if '.' in record.name else record.name

        # [scheduler] = 11 chars, [WARNING] = 9 chars
        component_padded = f'[{component}]'.ljust(14)
        level_padded = f'[{record.levelname}]'.ljust(10)
        level_color = self.LEVEL_COLORS.get(record.levelname, self.COLORS['WHITE'])

        formatted = (
            self._paint(f'[{time_str}]', self.COLORS['LIGHT_BLUE'])
            + ' '
            + self._paint(component_padded, self.COLORS['WHITE'])
            + self._paint(level_padded, level_color)
            + self._paint(record.getMessage(), self.COLORS['WHITE'])
        )

        if record.exc_info:
            formatted += '\n' + self.formatException(record.exc_info)

        return formatted


def _stdout_supports_color() -> bool:
    if os.environ.get('NO_COLOR') is not None:
        return False
    return hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()


def parse_level(level_name: str | None, fallback: int = logging.INFO) -> int:
    """Map 'debug'/'INFO'/... to a logging level, falling back on unknown names."""
    if not level_name:
        return fallback
    level = logging.getLevelName(level_name.strip().upper())
    return level if isinstance(level, int) else fallback


def set_default_level(level: int) -> None:
    """Set the level for new loggers and re-level the existing ones."""
    global _default_level
    _default_level = level

    for name in list(logging.Logger.manager.loggerDict):
        if isinstance(name, str) and name.startswith(f'{LOGGER_PREFIX}.'):
            lgr = logging.getLogger(name)
            lgr.setLevel(level)
            for handler in lgr.handlers:
                handler.setLevel(level)


def get_logger(component_name: str) -> logging.Logger:
    """Get a logger for the specified component."""
    logger = logging.getLogger(f'{LOGGER_PREFIX}.{component_name}')

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ColoredFormatter(use_colors=_stdout_supports_color()))
        handler.setLevel(_default_level)
        logger.addHandler(handler)
        logger.setLevel(_default_level)

        # Prevent duplicate logs from parent loggers
        logger.propagate = False

    return logger
