"""In-memory registry of live game servers."""

from __future__ import annotations

import asyncio
import itertools
import secrets
import time
from typing import TYPE_CHECKING

import structlog

from masterlist.registry.types import (
    MutationResult,
    OwnershipCheck,
    PatchableField,
    ServerCandidate,
    ServerRecord,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = structlog.get_logger()

_ID_RANDOM_BYTES = 12


class RegistryStore:
    """Sole owner of every ServerRecord.

    Every read hands out a deep copy, and every write happens under one
    asyncio.Lock so a remove racing a heartbeat never sees a half-updated
    record. Records are gone on restart.
    """

    def __init__(self) -> None:
        self._servers: dict[str, ServerRecord] = {}  # server_id -> ServerRecord
        self._lock = asyncio.Lock()
        self._sequence = itertools.count(1)

    def _next_id(self) -> str:
        # the sequence suffix makes ids unique; the random prefix makes them unguessable
        return f"{secrets.token_hex(_ID_RANDOM_BYTES)}{next(self._sequence):08x}"

    def __len__(self) -> int:
        return len(self._servers)

    async def insert(self, candidate: ServerCandidate) -> str:
        async with self._lock:
            server_id = self._next_id()
            self._servers[server_id] = ServerRecord(
                id=server_id,
                player_count=0,
                last_heartbeat=time.time(),
                **candidate.model_dump(),
            )
        logger.info("server registered", server_id=server_id, ip=candidate.ip)
        return server_id

    async def get(self, server_id: str) -> ServerRecord | None:
        async with self._lock:
            record = self._servers.get(server_id)
            return record.model_copy(deep=True) if record is not None else None

    async def list_servers(self) -> list[ServerRecord]:
        async with self._lock:
            return [record.model_copy(deep=True) for record in self._servers.values()]

    async def remove(self, server_id: str) -> None:
        """Delete a record without any ownership check. Removing twice is a no-op."""
        async with self._lock:
            self._servers.pop(server_id, None)

    async def evict(self, max_age: float) -> list[str]:
        """Drop every record whose last heartbeat is older than max_age seconds."""
        async with self._lock:
            cutoff = time.time() - max_age
            stale = [sid for sid, record in self._servers.items() if record.last_heartbeat < cutoff]
            for sid in stale:
                del self._servers[sid]
        if stale:
            logger.info("evicted stale servers", count=len(stale))
        return stale

    def _authorize(self, server_id: str, caller_ip: str) -> OwnershipCheck:
        """Match the caller against the stored owner. Must be called with the lock held."""
        record = self._servers.get(server_id)
        if record is None or record.ip != caller_ip:
            return OwnershipCheck.denied()
        return OwnershipCheck(record=record)

    async def check_ownership(self, server_id: str, caller_ip: str) -> OwnershipCheck:
        async with self._lock:
            check = self._authorize(server_id, caller_ip)
            if not check.authorized:
                return check
            return OwnershipCheck(record=check.record.model_copy(deep=True))

    async def refresh(self, server_id: str, caller_ip: str, player_count: int) -> MutationResult:
        """Record a heartbeat: bump last_heartbeat and store the reported player count."""
        async with self._lock:
            check = self._authorize(server_id, caller_ip)
            if check.record is None:
                return MutationResult.NOT_AUTHORIZED
            check.record.last_heartbeat = max(check.record.last_heartbeat, time.time())
            check.record.player_count = player_count
        return MutationResult.APPLIED

    async def patch(self, server_id: str, caller_ip: str, values: Mapping[str, str]) -> MutationResult:
        """Apply the recognized field/value pairs in values; everything else is skipped.

        playerCount and maxPlayers are coerced to int (a value that does not
        coerce is skipped); other fields are stored exactly as given.
        """
        async with self._lock:
            check = self._authorize(server_id, caller_ip)
            if check.record is None:
                return MutationResult.NOT_AUTHORIZED
            for key, raw in values.items():
                try:
                    field = PatchableField(key)
                except ValueError:
                    continue
                if field.is_integer:
                    try:
                        value: str | int = int(raw)
                    except (TypeError, ValueError):
                        continue
                else:
                    value = raw
                setattr(check.record, field.attribute, value)
        return MutationResult.APPLIED

    async def deregister(self, server_id: str, caller_ip: str) -> MutationResult:
        async with self._lock:
            check = self._authorize(server_id, caller_ip)
            if check.record is None:
                return MutationResult.NOT_AUTHORIZED
            del self._servers[server_id]
        logger.info("server deregistered", server_id=server_id)
        return MutationResult.APPLIED
