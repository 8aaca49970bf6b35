# pricewatch/config/logging_config.py

"""Run-scoped logging for pricewatch.

Every CLI invocation writes a ``logs/run_YYYYMMDD_HHMMSS.log`` file that
collects the whole ``pricewatch.*`` logger tree at DEBUG: fetch attempts
and their site variants, extraction fallbacks, notification decisions and
push outcomes. Scheduled ``check-all`` runs start one file each, so only
the newest ``Settings.LOG_RETENTION`` run files are kept.

The stderr handler stays at WARNING unless the caller asks for more;
stdout is left alone because JSON output goes there.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from pricewatch.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | "
    "%(funcName)s:%(lineno)d | %(message)s"
)
_STDERR_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_RUN_GLOB = "run_*.log"


def prune_run_logs(logs_dir: Path, keep: int) -> list[Path]:
    """Delete all but the *keep* newest run logs; return what was removed."""
    runs = sorted(logs_dir.glob(_RUN_GLOB), key=lambda p: p.name)
    stale = runs[:-keep] if keep > 0 else runs
    removed: list[Path] = []
    for path in stale:
        try:
            path.unlink()
        except OSError:
            continue
        removed.append(path)
    return removed


def setup_logging(
    logs_dir: Path | None = None,
    console_level: int = logging.WARNING,
    retention: int | None = None,
) -> Path:
    """Attach the run file and stderr handlers to the ``pricewatch`` logger.

    Calling it again in the same process adds no handlers and returns the
    path a fresh run file would have had.
    """
    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    project_logger = logging.getLogger("pricewatch")
    project_logger.setLevel(logging.DEBUG)
    if project_logger.handlers:
        return log_file

    keep = Settings.LOG_RETENTION if retention is None else retention
    # One slot for the file about to be opened
    pruned = prune_run_logs(target_dir, max(keep - 1, 0))

    run_handler = logging.FileHandler(log_file, encoding="utf-8")
    run_handler.setLevel(logging.DEBUG)
    run_handler.setFormatter(logging.Formatter(_FILE_FORMAT, _DATE_FORMAT))
    project_logger.addHandler(run_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(console_level)
    stderr_handler.setFormatter(logging.Formatter(_STDERR_FORMAT))
    project_logger.addHandler(stderr_handler)

    if pruned:
        project_logger.debug("Pruned %d old run logs", len(pruned))
    project_logger.info("Run log: %s", log_file)
    return log_file
