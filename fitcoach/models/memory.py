"""
Memory tier and learning model data structures.

Each tier is its own record type with its own constructor. Every record exposes
`text`, `context_blob` and `weight`, which is all relevance scoring and cleanup need.
"""

import json
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Union


class MemoryKind(Enum):
    SHORT_TERM = 'short_term'
    LONG_TERM = 'long_term'
    EPISODIC = 'episodic'
    SEMANTIC = 'semantic'
    PROCEDURAL = 'procedural'


class LearningModelKind(Enum):
    PATTERN = 'pattern'
    PREFERENCE = 'preference'
    BEHAVIOR = 'behavior'
    GOAL = 'goal'


def new_memory_id(prefix: str) -> str:
    return f'{prefix}_{uuid.uuid4().hex}'


def clamp_unit(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


def _serialize(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


@dataclass
class ShortTermMemory:
    id: str
    created_at: datetime
    content: str
    importance: float
    context: Dict[str, Any] = field(default_factory=dict)
    decay_rate: float = 0.1

    kind = MemoryKind.SHORT_TERM

    @classmethod
    def create(cls, content: str, importance: float = 0.5, context: Optional[Dict[str, Any]] = None,
               created_at: Optional[datetime] = None) -> 'ShortTermMemory':
        return cls(id=new_memory_id('st'),
                   created_at=created_at or datetime.now(),
                   content=content,
                   importance=clamp_unit(importance),
                   context=dict(context or {}))

    @property
    def text(self) -> str:
        return self.content

    @property
    def context_blob(self) -> str:
        return _serialize(self.context)

    @property
    def weight(self) -> float:
        return self.importance


@dataclass
class LongTermMemory:
    id: str
    created_at: datetime
    content: str
    importance: float
    context: Dict[str, Any] = field(default_factory=dict)
    associations: List[str] = field(default_factory=list)
    retrieval_strength: float = 1.0

    kind = MemoryKind.LONG_TERM

    @classmethod
    def create(cls,
               content: str,
               importance: float = 0.8,
               context: Optional[Dict[str, Any]] = None,
               associations: Optional[List[str]] = None,
               created_at: Optional[datetime] = None) -> 'LongTermMemory':
        return cls(id=new_memory_id('lt'),
                   created_at=created_at or datetime.now(),
                   content=content,
                   importance=clamp_unit(importance),
                   context=dict(context or {}),
                   associations=list(associations or []))

    @property
    def text(self) -> str:
        return self.content

    @property
    def context_blob(self) -> str:
        return _serialize(self.context)

    @property
    def weight(self) -> float:
        return self.importance


@dataclass
class EpisodicMemory:
    id: str
    created_at: datetime
    event: str
    significance: float
    context: Dict[str, Any] = field(default_factory=dict)
    emotions: List[str] = field(default_factory=list)
    participants: List[str] = field(default_factory=list)
    location: str = ''

    kind = MemoryKind.EPISODIC

    @classmethod
    def create(cls,
               event: str,
               significance: float = 0.5,
               context: Optional[Dict[str, Any]] = None,
               emotions: Optional[List[str]] = None,
               participants: Optional[List[str]] = None,
               location: str = '',
               created_at: Optional[datetime] = None) -> 'EpisodicMemory':
        return cls(id=new_memory_id('ep'),
                   created_at=created_at or datetime.now(),
                   event=event,
                   significance=clamp_unit(significance),
                   context=dict(context or {}),
                   emotions=list(emotions or []),
                   participants=list(participants or []),
                   location=location)

    @property
    def text(self) -> str:
        return self.event

    @property
    def context_blob(self) -> str:
        return _serialize(self.context)

    @property
    def weight(self) -> float:
        return self.significance


@dataclass
class SemanticMemory:
    id: str
    created_at: datetime
    concept: str
    definition: str
    confidence: float
    properties: Dict[str, Any] = field(default_factory=dict)
    relationships: Dict[str, List[str]] = field(default_factory=dict)

    kind = MemoryKind.SEMANTIC

    @classmethod
    def create(cls,
               concept: str,
               definition: str,
               confidence: float = 0.8,
               properties: Optional[Dict[str, Any]] = None,
               relationships: Optional[Dict[str, List[str]]] = None,
               created_at: Optional[datetime] = None) -> 'SemanticMemory':
        return cls(id=new_memory_id('sm'),
                   created_at=created_at or datetime.now(),
                   concept=concept,
                   definition=definition,
                   confidence=clamp_unit(confidence),
                   properties=dict(properties or {}),
                   relationships={key: list(value) for key, value in (relationships or {}).items()})

    @property
    def text(self) -> str:
        return f'{self.concept} {self.definition}'

    @property
    def context_blob(self) -> str:
        return _serialize({'properties': self.properties, 'relationships': self.relationships})

    @property
    def weight(self) -> float:
        return self.confidence


@dataclass
class ProceduralMemory:
    id: str
    created_at: datetime
    skill: str
    steps: List[str]
    success_rate: float
    last_used: datetime
    improvement: float = 0.1

    kind = MemoryKind.PROCEDURAL

    @classmethod
    def create(cls,
               skill: str,
               steps: Optional[List[str]] = None,
               success_rate: float = 0.5,
               improvement: float = 0.1,
               created_at: Optional[datetime] = None) -> 'ProceduralMemory':
        now = created_at or datetime.now()
        return cls(id=new_memory_id('pr'),
                   created_at=now,
                   skill=skill,
                   steps=list(steps or []),
                   success_rate=clamp_unit(success_rate),
                   last_used=now,
                   improvement=improvement)

    @property
    def text(self) -> str:
        return ' '.join([self.skill] + self.steps)

    @property
    def context_blob(self) -> str:
        return ''

    @property
    def weight(self) -> float:
        return self.success_rate


MemoryRecord = Union[ShortTermMemory, LongTermMemory, EpisodicMemory, SemanticMemory, ProceduralMemory]


@dataclass
class MemoryBank:
    """All memory tiers of one session."""
    short_term: List[ShortTermMemory] = field(default_factory=list)
    long_term: List[LongTermMemory] = field(default_factory=list)
    episodic: List[EpisodicMemory] = field(default_factory=list)
    semantic: List[SemanticMemory] = field(default_factory=list)
    procedural: List[ProceduralMemory] = field(default_factory=list)

    def tier(self, kind: MemoryKind) -> List[MemoryRecord]:
        return getattr(self, kind.value)

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(self.tier(kind)) for kind in MemoryKind}


@dataclass
class Prediction:
    id: str
    input: Any
    output: Any
    confidence: float
    timestamp: datetime
    actual: Any = None
    accuracy: Optional[float] = None


def empty_model_data() -> Dict[str, Any]:
    return {'patterns': {}, 'preferences': [], 'behaviors': {}, 'knowledge': [], 'procedures': []}


@dataclass
class LearningModel:
    id: str
    kind: LearningModelKind = LearningModelKind.PATTERN
    data: Dict[str, Any] = field(default_factory=empty_model_data)
    accuracy: float = 0.5
    last_updated: datetime = field(default_factory=datetime.now)
    predictions: Deque[Prediction] = field(default_factory=lambda: deque(maxlen=100))
