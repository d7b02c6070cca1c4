"""Durable ledger of order ids that have been forwarded.

The ledger persists processed ids to a JSON file so that restarts do not
result in orders being delivered twice. Every successful mark rewrites the
whole file (write to a temporary file, then atomically replace) before
returning to the caller.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

LEDGER_KEY = "sent_order_ids"


class LedgerWriteError(Exception):
    """Raised when the ledger could not be written to disk."""

    def __init__(self, path: str, error: OSError) -> None:
        self.path = path
        self.error = error
        super().__init__(f"Failed to write sent ledger {path}: {error}")


def canonical_order_id(value: Any) -> str:
    """Return the canonical string form of an order identifier.

    ``101`` and ``"101"`` map to the same entry. Booleans, ``None``, blank
    strings and non-scalar values are rejected with :class:`ValueError`.
    """

    if value is None or isinstance(value, bool):
        raise ValueError(f"invalid order id: {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"invalid order id: {value!r}")
        return str(int(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("invalid order id: empty string")
        return text
    raise ValueError(f"invalid order id: {value!r}")


class SentLedger:
    """Tracks forwarded order ids and mirrors them to a JSON file."""

    def __init__(self, path: str = os.path.join("data", "sent.json")) -> None:
        self._path = path
        # dict keeps insertion order for snapshot()
        self._ids: Dict[str, None] = {}
        self.load()

    @property
    def path(self) -> str:
        return self._path

    @property
    def size(self) -> int:
        return len(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, order_id: Any) -> bool:
        return self.contains(order_id)

    def load(self) -> None:
        """Replace the in-memory set with the file contents.

        A missing, unreadable or malformed file yields an empty ledger.
        """

        self._ids = {}
        if not os.path.exists(self._path):
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError, RecursionError) as exc:
            logger.warning("Ignoring unreadable sent ledger %s: %s", self._path, exc)
            return

        ids = data.get(LEDGER_KEY) if isinstance(data, dict) else None
        if not isinstance(ids, list):
            logger.warning("Ignoring malformed sent ledger %s", self._path)
            return
        loaded: Dict[str, None] = {}
        for item in ids:
            if isinstance(item, bool) or not isinstance(item, (str, int)):
                logger.warning("Ignoring malformed sent ledger %s", self._path)
                return
            try:
                loaded[canonical_order_id(item)] = None
            except ValueError:
                logger.warning("Ignoring malformed sent ledger %s", self._path)
                return
        self._ids = loaded
        logger.info("Loaded %d sent order ids from %s", len(loaded), self._path)

    def contains(self, order_id: Any) -> bool:
        try:
            return canonical_order_id(order_id) in self._ids
        except ValueError:
            return False

    def mark_sent(self, order_id: Any) -> bool:
        """Record ``order_id`` as forwarded and flush the ledger to disk.

        Returns ``True`` when the id was not yet present. If the write fails
        the id is dropped again and :class:`LedgerWriteError` is raised.
        """

        key = canonical_order_id(order_id)
        added = key not in self._ids
        self._ids[key] = None
        try:
            self._save(list(self._ids))
        except LedgerWriteError:
            if added:
                del self._ids[key]
            raise
        return added

    def reset(self) -> None:
        """Forget every id and persist the empty ledger.

        The in-memory set is only cleared once the empty file is written.
        """

        self._save([])
        self._ids = {}

    def snapshot(self) -> List[str]:
        return list(self._ids)

    def _save(self, ids: List[str]) -> None:
        payload = {LEDGER_KEY: ids}
        tmp = f"{self._path}.tmp"
        try:
            directory = os.path.dirname(self._path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                os.remove(tmp)
            raise LedgerWriteError(self._path, exc) from exc
