# src/config/logging_config.py

"""Per-run logging for scheduled reconciliation cycles.

Every cycle writes its own ``logs/run_YYYYMMDD_HHMMSS.log`` through the
``price_tracker`` logger, so the dropped-listing DEBUG lines for one run
can be read in isolation.  Only WARNING and above reach stderr, leaving
the JSON report on stdout untouched.

The tracker runs unattended on a schedule, so run logs are pruned on the
same retention window as the history ledger: a log whose launch stamp is
older than ``retention_days`` is deleted at startup.
"""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

from src.config.settings import Settings

_LOG_NAME_FORMAT = "run_%Y%m%d_%H%M%S.log"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | "
    "%(message)s"
)

_STDERR_FORMAT = "%(levelname)s %(name)s: %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def prune_run_logs(
    logs_dir: Path,
    retention_days: int,
    now: datetime | None = None,
) -> list[Path]:
    """Delete run logs launched more than ``retention_days`` before ``now``.

    Files whose names do not carry a run stamp are left alone.  Returns
    the paths that were removed.
    """
    if not logs_dir.is_dir():
        return []
    cutoff = (now or datetime.now()) - timedelta(days=retention_days)
    removed: list[Path] = []
    for path in sorted(logs_dir.glob("run_*.log")):
        try:
            launched = datetime.strptime(path.name, _LOG_NAME_FORMAT)
        except ValueError:
            continue
        if launched < cutoff:
            path.unlink(missing_ok=True)
            removed.append(path)
    return removed


def setup_logging(
    logs_dir: Path | None = None,
    retention_days: int | None = None,
) -> Path:
    """Attach the per-run file and stderr handlers to ``price_tracker``.

    Repeated calls in one process keep the handlers from the first call.

    Returns:
        The :class:`~pathlib.Path` of this run's log file.
    """
    logs_dir = logs_dir or Settings.LOGS_DIR
    if retention_days is None:
        retention_days = Settings.LOG_RETENTION_DAYS
    logs_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    log_file = logs_dir / now.strftime(_LOG_NAME_FORMAT)

    project_logger = logging.getLogger("price_tracker")
    project_logger.setLevel(logging.DEBUG)
    if project_logger.handlers:
        return log_file

    removed = prune_run_logs(logs_dir, retention_days, now)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(logging.Formatter(_STDERR_FORMAT))

    project_logger.addHandler(file_handler)
    project_logger.addHandler(stderr_handler)

    project_logger.info("Run log: %s", log_file)
    if removed:
        project_logger.info(
            "Pruned %d run logs older than %d days", len(removed), retention_days
        )
    return log_file
