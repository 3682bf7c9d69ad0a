"""Persistence of one run: table, summary and log.

Each run gets its own directory under the output root::

    <root>/<search>_<location>_<UTC timestamp>/
        <search>_<location>.csv     checkpoint, replaced by the final table
        summary.json                RunSummary of the finished run
        scrape.log                  timestamped, append-only run log

Every file is written to a temporary sibling first and moved into place
with os.replace(), so an interrupted run leaves the last complete
checkpoint behind rather than a truncated one.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from dirscrape.data_types import RunSummary, utc_now

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def slugify(text: str) -> str:
    """Filesystem-safe slug of a search term or location.

    Examples:
        >>> slugify("Plumbers & Pipes")
        'plumbers_pipes'
        >>> slugify("Austin, TX 78701")
        'austin_tx_78701'
    """
    text = re.sub(r"[^\w\s-]", "", text.lower().strip())
    return re.sub(r"[-\s]+", "_", text).strip("_") or "run"


def atomic_write_text(path: Path, content: str) -> None:
    """Write text to ``path`` via a temporary file and an atomic rename.

    Raises:
        OSError: If the file cannot be written. The temporary file is
            removed and any previous content of ``path`` is left intact.
    """
    fd, temp_path = tempfile.mkstemp(
        dir=path.parent, prefix=".tmp_", suffix=path.suffix
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(temp_path, path)
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise


class RunOutput:
    """Owns the output directory of one run.

    Args:
        root: Directory under which run directories are created.
        search_term: Used in directory and table names.
        location: Used in directory and table names.
        started_at: Run start, used in the directory name. Defaults to now.
    """

    def __init__(
        self,
        root: Path | str,
        search_term: str,
        location: str,
        started_at: datetime | None = None,
    ) -> None:
        started_at = started_at or utc_now()
        stem = f"{slugify(search_term)}_{slugify(location)}"
        stamp = started_at.strftime("%Y%m%dT%H%M%SZ")
        self.directory = Path(root) / f"{stem}_{stamp}"
        self.table_path = self.directory / f"{stem}.csv"
        self.summary_path = self.directory / "summary.json"
        self.log_path = self.directory / "scrape.log"

    def prepare(self) -> RunOutput:
        """Create the run directory."""
        self.directory.mkdir(parents=True, exist_ok=True)
        return self

    def write_checkpoint(self, table: str) -> Path:
        """Replace the table file with a mid-run checkpoint."""
        atomic_write_text(self.table_path, table)
        logger.info(f"Checkpoint saved to {self.table_path}")
        return self.table_path

    def write_table(self, table: str) -> Path:
        """Write the final table."""
        atomic_write_text(self.table_path, table)
        logger.info(f"Final data saved to {self.table_path}")
        return self.table_path

    def write_summary(self, summary: RunSummary) -> Path:
        atomic_write_text(
            self.summary_path,
            json.dumps(summary.to_dict(), indent=2, ensure_ascii=False) + "\n",
        )
        return self.summary_path

    @contextmanager
    def capture_log(
        self, logger_name: str = "dirscrape", level: int = logging.INFO
    ) -> Iterator[Path]:
        """Copy log records of the run into the run's log file.

        The handler is attached to ``logger_name`` for the duration of the
        block and always detached and closed afterwards.
        """
        self.prepare()
        handler = logging.FileHandler(self.log_path, mode="a", encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        target = logging.getLogger(logger_name)
        previous_level = target.level
        if target.getEffectiveLevel() > level:
            target.setLevel(level)
        target.addHandler(handler)
        try:
            yield self.log_path
        finally:
            target.removeHandler(handler)
            target.setLevel(previous_level)
            handler.close()
