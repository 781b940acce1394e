"""Trade journal — append-only NDJSON record of entries and exits."""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("bostrade.journal")


class TradeJournal:
    """Appends one JSON object per line to a local file.

    Args:
        path: Path to the journal file.  Parent directories are created on
            first write.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    # ── Write ────────────────────────────────────────────────────────────

    def append(self, record: dict) -> dict:
        """Write *record* as one line, stamping ``recorded_at`` if absent."""
        entry = dict(record)
        entry.setdefault("recorded_at", datetime.now(timezone.utc).isoformat())

        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as fh:
            fh.write(json.dumps(entry, default=str) + "\n")
        return entry

    def record_entry(self, summary: dict, order_id: Optional[str], **extra) -> dict:
        """Journal an opened trade from a ``RiskManager.trade_summary``."""
        return self.append({"event": "ENTRY", "order_id": order_id, **summary, **extra})

    def record_exit(self, side: str, size: float, reason: str, **extra) -> dict:
        """Journal a closed position."""
        return self.append({
            "event": "EXIT", "side": side, "size": size, "reason": reason, **extra,
        })

    # ── Read ─────────────────────────────────────────────────────────────

    def read_all(self, limit: Optional[int] = None) -> list[dict]:
        """Return journal records oldest-first (the last *limit* if given).

        Lines that are not valid JSON are skipped with a warning.
        """
        if not os.path.exists(self._path):
            return []

        records: list[dict] = []
        with open(self._path, encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed journal line %d", lineno)
        if limit is not None:
            return records[-limit:] if limit > 0 else []
        return records
