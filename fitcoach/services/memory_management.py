"""
Memory Management Service for per-session multi-tier memory.
"""

import math
import re
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Union

from ..models.memory import (EpisodicMemory, LongTermMemory, MemoryBank, MemoryKind, MemoryRecord, ProceduralMemory, SemanticMemory,
                             ShortTermMemory)
from ..utils.config import MemoryConfig, config
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import hours_between
from .learning_models import LearningModelService

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(r'\w+')

# Relevance = text overlap + context overlap + recency + record weight
TEXT_WEIGHT = 0.4
CONTEXT_WEIGHT = 0.3
RECENCY_WEIGHT = 0.2
RECORD_WEIGHT = 0.1
RECENCY_DECAY_HOURS = 24.0

# Tiers subject to age-based cleanup
EPHEMERAL_KINDS = (MemoryKind.SHORT_TERM, MemoryKind.EPISODIC)


class MemoryManagementError(Exception):
    """Custom exception for memory management errors."""
    pass


def _token_set(text: str) -> Set[str]:
    return set(TOKEN_PATTERN.findall(text.lower()))


def jaccard(left: str, right: str) -> float:
    """Jaccard similarity of the word sets of two strings."""
    left_tokens = _token_set(left)
    right_tokens = _token_set(right)
    union = left_tokens | right_tokens
    if not union:
        return 0.0
    return len(left_tokens & right_tokens) / len(union)


class MemoryManagementService:
    """Unified service for memory operations: storing, retrieval, cleanup and consolidation."""

    def __init__(self,
                 learning_models: Optional[LearningModelService] = None,
                 memory_config: Optional[MemoryConfig] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """
        Initialize the memory management service.

        Args:
            learning_models: LearningModelService notified on every store, created if None
            memory_config: MemoryConfig with retention and consolidation thresholds, uses default if None
            clock: Callable returning the current time
        """
        self.config = memory_config or config.memory
        self.clock = clock
        self.learning_models = learning_models or LearningModelService(self.config, clock=clock)
        self._banks: Dict[str, MemoryBank] = {}
        self._locks: Dict[str, threading.RLock] = {}

        logger.info('Initialized MemoryManagementService')

    def _lock_for(self, session_id: str) -> threading.RLock:
        return self._locks.setdefault(session_id, threading.RLock())

    def _bank_for(self, session_id: str) -> MemoryBank:
        bank = self._banks.get(session_id)
        if bank is None:
            bank = self._banks.setdefault(session_id, MemoryBank())
        return bank

    def has_session(self, session_id: str) -> bool:
        return session_id in self._banks

    def remove(self, session_id: str) -> None:
        """Drop all memory and the learning model of a session."""
        self._banks.pop(session_id, None)
        self._locks.pop(session_id, None)
        self.learning_models.remove(session_id)
        logger.debug(f'Removed memory bank for session: {session_id}')

    def store(self,
              session_id: str,
              kind: Union[MemoryKind, str],
              content: str,
              importance: float = 0.5,
              context: Optional[Dict[str, Any]] = None,
              **fields: Any) -> str:
        """Store a memory record in one tier.

        `content` fills the tier's primary text (content, event, concept or skill) and
        `importance` its weight (importance, significance, confidence or success rate).
        Tier-specific values such as `emotions`, `definition` or `steps` go in `fields`.

        Args:
            session_id: Session key, the bank is created on first store
            kind: Memory tier
            content: Primary text of the record
            importance: Record weight, clamped to [0, 1]
            context: Free-form context map
            **fields: Tier-specific fields

        Returns:
            Id of the stored record, empty if the tier is unknown or the fields do not fit it
        """
        try:
            kind = MemoryKind(kind)
            record = self._build_record(kind, content, importance, context or {}, fields)
        except (ValueError, TypeError) as e:
            logger.error(f'Invalid memory record for session {session_id}, nothing stored: {e}')
            return ''

        with self._lock_for(session_id):
            self._bank_for(session_id).tier(kind).append(record)

        logger.debug(f'Stored {kind.value} memory {record.id} for session {session_id}')

        try:
            self.learning_models.update_learning_models(session_id, kind, record)
        except Exception as e:
            logger.error(f'Learning model update failed for memory {record.id}: {e}')

        return record.id

    def store_short_term(self, session_id: str, content: str, importance: float = 0.5, context: Optional[Dict[str, Any]] = None) -> str:
        return self.store(session_id, MemoryKind.SHORT_TERM, content, importance, context)

    def store_long_term(self,
                        session_id: str,
                        content: str,
                        importance: float = 0.8,
                        context: Optional[Dict[str, Any]] = None,
                        associations: Optional[List[str]] = None) -> str:
        return self.store(session_id, MemoryKind.LONG_TERM, content, importance, context, associations=associations)

    def store_episodic(self,
                       session_id: str,
                       event: str,
                       context: Optional[Dict[str, Any]] = None,
                       emotions: Optional[List[str]] = None,
                       participants: Optional[List[str]] = None,
                       location: str = '',
                       significance: float = 0.5) -> str:
        return self.store(session_id,
                          MemoryKind.EPISODIC,
                          event,
                          significance,
                          context,
                          emotions=emotions,
                          participants=participants,
                          location=location)

    def store_semantic(self,
                       session_id: str,
                       concept: str,
                       definition: str,
                       properties: Optional[Dict[str, Any]] = None,
                       relationships: Optional[Dict[str, List[str]]] = None,
                       confidence: float = 0.8) -> str:
        return self.store(session_id,
                          MemoryKind.SEMANTIC,
                          concept,
                          confidence,
                          definition=definition,
                          properties=properties,
                          relationships=relationships)

    def store_procedural(self,
                         session_id: str,
                         skill: str,
                         steps: Optional[List[str]] = None,
                         success_rate: float = 0.5,
                         improvement: float = 0.1) -> str:
        return self.store(session_id, MemoryKind.PROCEDURAL, skill, success_rate, steps=steps, improvement=improvement)

    def retrieve(self,
                 session_id: str,
                 query: str,
                 kind: Optional[Union[MemoryKind, str]] = None,
                 limit: int = 10,
                 now: Optional[datetime] = None) -> List[MemoryRecord]:
        """Return the session's memories ranked by relevance to a query.

        Args:
            session_id: Session key
            query: Free-text query
            kind: Restrict to one tier (optional)
            limit: Maximum number of records to return (default: 10)
            now: Reference time for recency (optional, uses the clock if None)

        Returns:
            Records sorted by descending relevance, empty for an unknown session

        Raises:
            MemoryManagementError: If the tier filter is not a known tier
        """
        bank = self._banks.get(session_id)
        if bank is None:
            return []

        try:
            kinds = [MemoryKind(kind)] if kind is not None else list(MemoryKind)
        except ValueError:
            raise MemoryManagementError(f'Unknown memory tier: {kind}')
        now = now or self.clock()

        with self._lock_for(session_id):
            records = [record for tier in kinds for record in bank.tier(tier)]

        ranked = sorted(records, key=lambda record: self.relevance(record, query, now), reverse=True)
        logger.debug(f'Retrieved {min(len(ranked), limit)} of {len(ranked)} memories for session {session_id}')
        return ranked[:max(limit, 0)]

    def relevance(self, record: MemoryRecord, query: str, now: Optional[datetime] = None) -> float:
        now = now or self.clock()
        recency = math.exp(-hours_between(record.created_at, now) / RECENCY_DECAY_HOURS)
        return (TEXT_WEIGHT * jaccard(record.text, query) + CONTEXT_WEIGHT * jaccard(record.context_blob, query) +
                RECENCY_WEIGHT * recency + RECORD_WEIGHT * record.weight)

    def cleanup(self, session_id: Optional[str] = None, now: Optional[datetime] = None) -> int:
        """Remove stale short-term and episodic memories.

        Records older than the retention window are removed unless their weight is
        above the retention threshold.

        Args:
            session_id: Session to clean (optional, cleans every session if None)
            now: Reference time (optional, uses the clock if None)

        Returns:
            Number of records removed
        """
        now = now or self.clock()
        cutoff = now - timedelta(days=self.config.retention_days)
        session_ids = [session_id] if session_id is not None else list(self._banks.keys())

        removed = 0
        for current in session_ids:
            bank = self._banks.get(current)
            if bank is None:
                continue
            with self._lock_for(current):
                for kind in EPHEMERAL_KINDS:
                    tier = bank.tier(kind)
                    kept = [record for record in tier if record.created_at >= cutoff or record.weight > self.config.retention_importance]
                    removed += len(tier) - len(kept)
                    tier[:] = kept

        if removed:
            logger.info(f'Cleaned up {removed} expired memories')
        else:
            logger.debug('No expired memories found for cleanup')
        return removed

    def consolidate(self, session_id: str, now: Optional[datetime] = None) -> int:
        """Promote important short-term memories older than a day into long-term memory.

        Args:
            session_id: Session key
            now: Reference time (optional, uses the clock if None)

        Returns:
            Number of promoted records
        """
        bank = self._banks.get(session_id)
        if bank is None:
            return 0

        now = now or self.clock()
        cutoff = now - timedelta(hours=24)
        with self._lock_for(session_id):
            promoted = [
                record for record in bank.short_term
                if record.importance > self.config.consolidation_importance and record.created_at < cutoff
            ]
            promoted_ids = {record.id for record in promoted}
            bank.short_term[:] = [record for record in bank.short_term if record.id not in promoted_ids]

            for record in promoted:
                self.store_long_term(session_id, record.content, record.importance, record.context, associations=[record.id])

        if promoted:
            logger.info(f'Consolidated {len(promoted)} short-term memories for session {session_id}')
        return len(promoted)

    def stats(self, session_id: str) -> Optional[Dict[str, int]]:
        """Per-tier record counts plus total, or None for an unknown session."""
        bank = self._banks.get(session_id)
        if bank is None:
            return None
        with self._lock_for(session_id):
            counts = bank.counts()
        counts['total'] = sum(counts.values())
        return counts

    def _build_record(self, kind: MemoryKind, content: str, importance: float, context: Dict[str, Any],
                      fields: Dict[str, Any]) -> MemoryRecord:
        created_at = self.clock()
        if kind is MemoryKind.SHORT_TERM:
            return ShortTermMemory.create(content, importance, context, created_at=created_at, **fields)
        if kind is MemoryKind.LONG_TERM:
            return LongTermMemory.create(content, importance, context, created_at=created_at, **fields)
        if kind is MemoryKind.EPISODIC:
            return EpisodicMemory.create(content, importance, context, created_at=created_at, **fields)
        if kind is MemoryKind.SEMANTIC:
            fields.setdefault('definition', '')
            if context:
                fields['properties'] = {**context, **(fields.get('properties') or {})}
            return SemanticMemory.create(content, confidence=importance, created_at=created_at, **fields)
        return ProceduralMemory.create(content, success_rate=importance, created_at=created_at, **fields)
