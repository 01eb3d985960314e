# market_trust/config/logging_config.py

"""Per-run logging configuration for market_trust.

Every CLI invocation writes to its own ``logs/run_YYYYMMDD_HHMMSS.log``
file.  Library modules never configure handlers themselves; they log
through ``market_trust.<area>`` child loggers and rely on this module
(or the embedding application) to attach handlers to the project root.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from market_trust.config.settings import Settings

PROJECT_LOGGER = "market_trust"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    logs_dir: Path | None = None,
    console_level: int = logging.WARNING,
) -> Path:
    """Attach file + stderr handlers to the ``market_trust`` logger.

    The file handler records everything (DEBUG+) so heal passes,
    submission verdicts and rank recomputes can be audited after the
    fact.  The console only shows ``console_level`` and above.

    Returns:
        The :class:`~pathlib.Path` of the log file for this run.
    """
    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"run_{stamp}.log"

    project_logger = logging.getLogger(PROJECT_LOGGER)
    project_logger.setLevel(logging.DEBUG)

    # Tests and embedding apps may call this more than once
    if project_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    project_logger.addHandler(file_handler)
    project_logger.addHandler(console_handler)

    project_logger.info("Logging initialised, run log at %s", log_file)
    return log_file
