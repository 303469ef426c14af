import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


PACKAGE_DIR = Path(__file__).resolve().parent
LOG_FILE_NAME = "sales_journal.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def resolve_log_dir(package_dir: Path = PACKAGE_DIR) -> Path:
    """Return the folder that receives the rotating log file.

    A source checkout (``<root>/src/sales_journal`` next to ``<root>/pyproject.toml``)
    logs to ``<root>/.logs``. An installed package logs to
    ``~/.sales_journal/logs`` instead of writing into site-packages.
    """

    checkout_root = package_dir.parents[1]
    if package_dir.parent.name == "src" and (checkout_root / "pyproject.toml").exists():
        return checkout_root / ".logs"
    return Path.home() / ".sales_journal" / "logs"


LOG_DIR = resolve_log_dir()
LOG_FILE = LOG_DIR / LOG_FILE_NAME


def _configure_logging(log_file: Path = LOG_FILE, level: int = logging.INFO) -> logging.Logger:
    """Configure package-wide logging with file and console handlers."""

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as exc:
        print(
            f"Warning: unable to initialize log file at '{log_file}': {exc}",
            file=sys.stderr,
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def set_log_level(level: int) -> None:
    """Change the level of the package logger and every handler it owns."""

    log.setLevel(level)
    for handler in log.handlers:
        handler.setLevel(level)
    log.debug("Log level set to %s", logging.getLevelName(level))


log = _configure_logging()
log.debug("Logger initialized for the 'sales_journal' package.")
