"""
Logging configuration for the contact cleaner.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Dict, Any, List, Optional


LOG_FILE_NAME = "contact_cleaner.log"

# Counters that are always shown, even when zero
ALWAYS_SHOWN = {'totalRows', 'finalRows'}


class ColoredFormatter(logging.Formatter):
    """Level-colored console formatter; plain output when color is off."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'RESET': '\033[0m'
    }

    def __init__(self, fmt=None, datefmt=None, use_color: bool = True):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def format(self, record):
        """Format with a colored level name; the record itself is restored afterwards."""
        if not self.use_color:
            return super().format(record)

        original = record.levelname
        color = self.COLORS.get(original, self.COLORS['RESET'])
        record.levelname = f"{color}{original}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logger(
    name: str = "contact_cleaner",
    level: str = "INFO",
    log_dir: Optional[str] = "logs"
) -> logging.Logger:
    """
    Configure the console logger and, optionally, a debug-level log file.

    Args:
        name: Logger name
        level: Console level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for contact_cleaner.log; None disables the file

    Returns:
        Configured logger instance
    """
    console_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if log_dir else console_level)
    logger.handlers.clear()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s [%(levelname)s]: %(message)s',
        datefmt='%H:%M:%S',
        use_color=sys.stdout.isatty(),
    ))
    logger.addHandler(console_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(path / LOG_FILE_NAME, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger


def log_progress(
    logger: logging.Logger,
    current: int,
    total: int,
    context: str = "Processing",
    item: str = ""
):
    """
    Log per-file progress. Single-item batches are logged at DEBUG only.

    Args:
        logger: Logger instance
        current: Current item number (1-based)
        total: Total items
        context: What is being done
        item: Name of the current item
    """
    percentage = (current / total * 100) if total > 0 else 0
    message = f"{context}: {current}/{total} ({percentage:.0f}%)"
    if item:
        message += f" {item}"

    if total > 1:
        logger.info(message)
    else:
        logger.debug(message)


def stat_label(key: str) -> str:
    """"duplicatesRemoved" -> "Duplicates Removed"."""
    words = re.sub(r'(?<=[a-z0-9])(?=[A-Z])', ' ', key).split()
    return ' '.join(w[:1].upper() + w[1:] for w in words)


def format_stats(stats_dict: Dict[str, Any]) -> List[str]:
    """Readable "Label: value" lines; zero counters other than the row totals are skipped."""
    width = max((len(stat_label(k)) for k in stats_dict), default=0)
    lines = []
    for key, value in stats_dict.items():
        if not value and key not in ALWAYS_SHOWN:
            continue
        shown = f"{value:.2f}" if isinstance(value, float) else value
        lines.append(f"{stat_label(key):<{width}}  {shown}")
    return lines


def log_stats(logger: logging.Logger, stats_dict: Dict[str, Any], title: str = "Statistics"):
    """
    Log cleaning statistics under a title.

    Args:
        logger: Logger instance
        stats_dict: CleaningStats.to_dict() output
        title: Section title
    """
    logger.info(f"=== {title} ===")
    for line in format_stats(stats_dict):
        logger.info(f"  {line}")
