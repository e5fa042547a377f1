# src/storage/state_store.py

"""File-backed persistence for the tracker state and change reports."""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings
from src.errors import StateDecodeError
from src.models.change_record import ChangeReport
from src.models.tracker_state import TrackerState
from src.storage.state_codec import dumps_state, encode_report

logger = logging.getLogger("price_tracker.storage")


class StateStore:
    """Single-writer JSON document store: read once, write once per cycle."""

    def __init__(
        self,
        state_path: Path | None = None,
        results_dir: Path | None = None,
    ) -> None:
        self.state_path: Path = state_path or Settings.STATE_PATH
        self.results_dir: Path = results_dir or Settings.RESULTS_DIR
        logger.debug(
            "StateStore initialised, state_path=%s results_dir=%s",
            self.state_path,
            self.results_dir,
        )

    def read(self) -> str | None:
        """Return the raw state document, or ``None`` on a first run.

        Raises:
            StateDecodeError: the file exists but cannot be read.
        """
        if not self.state_path.exists():
            logger.info("No state at %s, starting fresh", self.state_path)
            return None
        try:
            return self.state_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StateDecodeError(
                f"cannot read {self.state_path}: {exc}"
            ) from exc

    def write(self, state: TrackerState) -> Path:
        """Atomically replace the state document."""
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.state_path.parent,
            prefix=f".{self.state_path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(dumps_state(state))
            os.replace(tmp_name, self.state_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(
            "Saved %d listings and %d clusters to %s",
            len(state.listings),
            len(state.clusters),
            self.state_path,
        )
        return self.state_path

    def save_report(
        self,
        report: ChangeReport,
        destination: Path | None = None,
    ) -> Path:
        """Write the change report to ``destination`` or a timestamped file."""
        if destination is None:
            self.results_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            destination = self.results_dir / f"changes_{timestamp}.json"
        else:
            destination.parent.mkdir(parents=True, exist_ok=True)

        with open(destination, "w", encoding="utf-8") as f:
            json.dump(encode_report(report), f, ensure_ascii=False, indent=2)

        logger.info("Saved change report to %s", destination)
        return destination
