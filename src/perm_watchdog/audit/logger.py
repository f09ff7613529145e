"""Append-only JSONL audit log of permission changes.

Each run appends one ``permission_change`` record per changed entry followed
by a ``run_completed`` summary.  Every record carries a UTC ISO-8601
``timestamp`` and the ``run_id`` of the run that wrote it, so several runs
can share one file.

Example
-------
>>> from pathlib import Path
>>> audit = AuditLogger(Path("/tmp/watchdog-audit.jsonl"))
>>> audit.log({"event": "run_started", "root": "/srv/course"})
>>> audit.count() >= 1
True
"""
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from perm_watchdog.tree.report import ApplyReport

logger = logging.getLogger(__name__)

Record = dict[str, object]


class AuditLogger:
    """Writes and reads the audit trail of ``perm-watchdog apply`` runs.

    Parameters
    ----------
    log_path:
        The ``.jsonl`` file.  Missing parent directories are created when
        the first record is written.
    run_id:
        Stamped on every record written through this instance.  Defaults to
        a random UUID.
    """

    def __init__(self, log_path: str | Path, run_id: str | None = None) -> None:
        self._log_path = Path(log_path)
        self._run_id: str = run_id or uuid.uuid4().hex

    @property
    def log_path(self) -> Path:
        return self._log_path

    @property
    def run_id(self) -> str:
        return self._run_id

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def log(self, entry: Record) -> None:
        """Append a single event record."""
        self._append([entry])

    def log_report(self, root: Path, report: ApplyReport) -> None:
        """Append every change in *report*, then a ``run_completed`` summary."""
        entries: list[Record] = [change.to_dict() for change in report.changes]
        entries.append({"event": "run_completed", "root": str(root), **report.summary()})
        self._append(entries)
        logger.debug(
            "Audited %d changes under %s to %s",
            report.change_count,
            root,
            self._log_path,
        )

    def _append(self, entries: Iterable[Record]) -> None:
        stamp = datetime.now(tz=timezone.utc).isoformat()
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        with self._log_path.open("a", encoding="utf-8") as out:
            for entry in entries:
                record = {"timestamp": stamp, "run_id": self._run_id, **entry}
                out.write(json.dumps(record, default=str) + "\n")

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_all(self) -> list[Record]:
        """Return every record in file order; ``[]`` if the file is absent."""
        return list(self._records())

    def query(self, filters: Record) -> list[Record]:
        """Return the records whose fields equal every value in *filters*."""
        return [
            record
            for record in self._records()
            if all(record.get(key) == value for key, value in filters.items())
        ]

    def count(self) -> int:
        return sum(1 for _ in self._records())

    def _records(self) -> Iterator[Record]:
        try:
            source = self._log_path.open("r", encoding="utf-8")
        except FileNotFoundError:
            return
        with source:
            for number, raw in enumerate(source, start=1):
                if not raw.strip():
                    continue
                try:
                    yield json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning(
                        "%s:%d: skipping malformed audit record", self._log_path, number
                    )
