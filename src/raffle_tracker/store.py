from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import time
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ContributionInProgressError, DecodeError, StoreConflictError
from .models import ContributionRecord, TicketResult
from .project_constants import STORE_VERSION

log = logging.getLogger(__name__)

# (inode, mtime_ns, size) of the store file as last seen; None if absent.
_Stamp = Optional[Tuple[int, int, int]]


def _stamp(path: str) -> _Stamp:
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return None
    return st.st_ino, st.st_mtime_ns, st.st_size


class PendingContributionStore:
    """
    Durable denom -> ContributionRecord registry.

    Every mutation is serialized per denom and written through to a JSON
    file, so a restart picks up where the previous process stopped. Reads
    return the last committed (immutable) record and never wait on a lock.
    A mutation is visible in memory only once it is on disk.

    One process owns a store file. If the file changes underneath (another
    tracker wrote it), the next write fails with StoreConflictError instead
    of overwriting the other writer's records.
    Pass path=None for a purely in-memory store.
    """

    def __init__(self, path: str | None) -> None:
        self.path = path
        self._records: Dict[str, ContributionRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._seen: _Stamp = None

    # ------------------------------------------------------------------ setup

    def load(self) -> "PendingContributionStore":
        self._records = {}
        if not self.path:
            return self
        self._seen = _stamp(self.path)
        if self._seen is None:
            return self

        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except ValueError as e:
                raise DecodeError(f"Store file {self.path} is not valid JSON: {e}")

        version = data.get("version") if isinstance(data, dict) else None
        if version != STORE_VERSION:
            raise DecodeError(f"Store file {self.path}: unsupported version {version!r}")

        for denom, raw in (data.get("contributions") or {}).items():
            try:
                self._records[denom] = ContributionRecord.from_dict(raw)
            except DecodeError as e:
                # One bad record must not hide the others.
                log.warning("Dropping unreadable record for %s: %s", denom, e)

        log.debug("Loaded %d pending contribution(s) from %s", len(self._records), self.path)
        return self

    def close(self) -> None:
        self._locks.clear()

    def _flush(self, records: Dict[str, ContributionRecord]) -> None:
        if not self.path:
            return
        if _stamp(self.path) != self._seen:
            raise StoreConflictError(self.path)

        payload = {
            "version": STORE_VERSION,
            "contributions": {k: r.to_dict() for k, r in sorted(records.items())},
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".contributions-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self._seen = _stamp(self.path)

    def _lock(self, denom: str) -> asyncio.Lock:
        lock = self._locks.get(denom)
        if lock is None:
            lock = self._locks[denom] = asyncio.Lock()
        return lock

    def _commit(self, denom: str, record: Optional[ContributionRecord]) -> None:
        records = dict(self._records)
        if record is None:
            records.pop(denom, None)
        else:
            records[denom] = record
        self._flush(records)
        self._records = records

    # ------------------------------------------------------------------ reads

    def get_pending(self, denom: str) -> Optional[ContributionRecord]:
        return self._records.get(denom)

    def all(self) -> List[ContributionRecord]:
        return [self._records[k] for k in sorted(self._records)]

    def open_keys(self) -> List[str]:
        return sorted(k for k, r in self._records.items() if not r.is_complete)

    # ----------------------------------------------------------------- writes

    async def create(
        self,
        denom: str,
        address: str,
        ticket_count: int,
        submission_height: int,
        tx_hash: str = "",
    ) -> ContributionRecord:
        """
        Register a freshly accepted contribution.

        An unresolved contribution for the same denom blocks a new one;
        a completed one is replaced.
        """
        async with self._lock(denom):
            existing = self._records.get(denom)
            if existing is not None and not existing.is_complete:
                raise ContributionInProgressError(denom)

            record = ContributionRecord(
                denom=denom,
                address=address,
                ticket_count=ticket_count,
                submission_height=submission_height,
                created_at=time.time(),
                tx_hash=tx_hash,
            )
            self._commit(denom, record)
            log.info("Tracking %d ticket(s) for %s at height %d",
                     ticket_count, denom, submission_height)
            return record

    async def upsert(self, denom: str, record: ContributionRecord) -> ContributionRecord:
        async with self._lock(denom):
            existing = self._records.get(denom)
            if (
                existing is not None
                and existing.was_closed
                and not record.was_closed
                and existing.same_contribution(record)
            ):
                record = record.closed()
            self._commit(denom, record)
            return record

    async def append_results(
        self,
        denom: str,
        results: Iterable[TicketResult],
    ) -> Tuple[Optional[ContributionRecord], bool]:
        """
        Append resolved tickets to the current record.

        Returns the committed record (None if it was removed meanwhile) and
        whether this very call completed it.
        """
        async with self._lock(denom):
            existing = self._records.get(denom)
            if existing is None:
                return None, False

            updated = existing.with_results(results)
            if updated.results == existing.results:
                return existing, False

            self._commit(denom, updated)
            return updated, updated.is_complete and not existing.is_complete

    async def mark_closed(self, denom: str) -> Optional[ContributionRecord]:
        async with self._lock(denom):
            existing = self._records.get(denom)
            if existing is None or existing.was_closed:
                return existing
            updated = existing.closed()
            self._commit(denom, updated)
            return updated

    async def close_presentation(self, denom: str) -> Optional[ContributionRecord]:
        """Drop a completed record, or flag an unfinished one as closed."""
        async with self._lock(denom):
            existing = self._records.get(denom)
            if existing is None:
                return None
            if existing.is_complete:
                self._commit(denom, None)
                return None
            updated = existing.closed()
            self._commit(denom, updated)
            return updated

    async def remove_pending(self, denom: str) -> bool:
        async with self._lock(denom):
            if denom not in self._records:
                return False
            self._commit(denom, None)
            return True
