import sys
from pathlib import Path

from loguru import logger

LEVEL_ICONS = {"INFO": "ℹ️", "SUCCESS": "✅", "WARNING": "⚠️", "ERROR": "❌"}


def _console_format(record) -> str:
    # "<module>" and "<lambda>" would otherwise be read as colour tags
    where = f"{record['name'].split('.')[-1]}:{record['function']}".replace("<", r"\<")
    icon = LEVEL_ICONS.get(record["level"].name, "📝")
    return f"<green>{{time:HH:mm:ss}}</green> | {icon} <level>{{level: <8}}</level> | <cyan>{where}</cyan> - <level>{{message}}</level>\n"


def setup_logging(log_level: str = "INFO", base_dir: Path = Path("."), log_to_file: bool = True):
    """
    Console sink for the terminal session, plus one size-rotated file.

    Tracebacks in the file are written without variable values
    (`diagnose=False`): they would otherwise contain passwords typed on
    the sign-in screen.
    """
    logger.remove()
    logger.add(sys.stderr, format=_console_format, level=log_level.upper(), colorize=True)

    if not log_to_file:
        return

    log_dir = base_dir / "logs"
    log_dir.mkdir(exist_ok=True)
    logger.add(
        log_dir / "recruitai.log",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="5 MB",
        retention=5,
        backtrace=True,
        diagnose=False,
        encoding="utf-8",
    )
