"""Agent registry backed by the document store."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import datetime

import structlog

from core.errors import AgentInactive, AgentInUse, DuplicateName, NotFound
from schemas.agent import AgentRecord, AgentRecordBase, AgentRecordUpdate
from schemas.base import utcnow
from storage.documents import Document, DocumentStore

logger = structlog.get_logger()


class AgentRegistry:
    """Holds agent records, keyed by their unique name.

    Performance counters are updated read-modify-write under one lock per
    agent name, so concurrent outcomes for the same agent never lose an
    update.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._register_lock = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    def _find_doc(self, name: str) -> Document | None:
        docs = self.store.find(lambda d: d.get("name") == name)
        return docs[0] if docs else None

    def _load(self, name: str) -> tuple[str, AgentRecord]:
        doc = self._find_doc(name)
        if doc is None:
            raise NotFound("agent", name)
        return doc["id"], AgentRecord.model_validate(doc)

    def register(self, record: AgentRecordBase | AgentRecord) -> AgentRecord:
        """Add a new agent. Fails with DuplicateName if the name is taken."""
        full = (
            record
            if isinstance(record, AgentRecord)
            else AgentRecord(**record.model_dump())
        )
        with self._register_lock:
            if self._find_doc(full.name) is not None:
                raise DuplicateName(full.name)
            self.store.insert_one(full.model_dump(mode="json"))
        logger.info(
            "Agent registered",
            agent=full.name,
            agent_type=full.agent_type.value,
            version=full.version,
        )
        return full

    def seed(self, records: Iterable[AgentRecordBase]) -> list[str]:
        """Register records that are not present yet. Returns names added."""
        added: list[str] = []
        for record in records:
            try:
                self.register(record)
            except DuplicateName:
                continue
            added.append(record.name)
        return added

    def resolve(self, name: str, require_active: bool = True) -> AgentRecord:
        """Look up an agent by name."""
        _, record = self._load(name)
        if require_active and not record.is_active:
            raise AgentInactive(name)
        return record

    def list_agents(self, active_only: bool = False) -> list[AgentRecord]:
        records = [AgentRecord.model_validate(d) for d in self.store.find()]
        if active_only:
            records = [r for r in records if r.is_active]
        return sorted(records, key=lambda r: r.name)

    def record_outcome(self, name: str, elapsed_ms: float, succeeded: bool) -> AgentRecord:
        """Fold one invocation outcome into the agent's performance stats."""
        with self._lock_for(name):
            doc_id, record = self._load(name)
            record.performance = record.performance.with_outcome(elapsed_ms, succeeded)
            record.updated_at = utcnow()
            self.store.update_one(
                doc_id,
                {
                    "performance": record.performance.model_dump(mode="json"),
                    "updated_at": record.updated_at.isoformat(),
                },
            )
        return record

    def mark_run(self, name: str, at: datetime | None = None) -> None:
        """Stamp ``last_run_at`` after a successful invocation."""
        at = at or utcnow()
        with self._lock_for(name):
            doc_id, _ = self._load(name)
            self.store.update_one(doc_id, {"last_run_at": at.isoformat()})

    def reconfigure(self, name: str, changes: AgentRecordUpdate) -> AgentRecord:
        """Apply an explicit reconfiguration."""
        patch = changes.model_dump(mode="json", exclude_none=True)
        with self._lock_for(name):
            doc_id, _ = self._load(name)
            patch["updated_at"] = utcnow().isoformat()
            self.store.update_one(doc_id, patch)
            _, record = self._load(name)
        logger.info("Agent reconfigured", agent=name, fields=sorted(patch))
        return record

    def set_active(self, name: str, is_active: bool) -> AgentRecord:
        with self._lock_for(name):
            doc_id, record = self._load(name)
            self.store.update_one(
                doc_id, {"is_active": is_active, "updated_at": utcnow().isoformat()}
            )
            record.is_active = is_active
        logger.info("Agent activation changed", agent=name, is_active=is_active)
        return record

    def remove(self, name: str, active_schedule_ids: list[str]) -> None:
        """Delete an agent that no active schedule references."""
        if active_schedule_ids:
            raise AgentInUse(name, active_schedule_ids)
        with self._lock_for(name):
            doc_id, _ = self._load(name)
            self.store.delete_many(lambda d: d.get("id") == doc_id)
        logger.info("Agent removed", agent=name)
