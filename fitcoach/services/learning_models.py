"""
Per-session learning models fed by the memory bank.
"""

import json
import re
import threading
import uuid
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..models.memory import (EpisodicMemory, LearningModel, LearningModelKind, LongTermMemory, MemoryKind, MemoryRecord, Prediction,
                             ProceduralMemory, SemanticMemory, ShortTermMemory)
from ..utils.config import MemoryConfig, config
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(r'\w+')
MIN_TOKEN_LENGTH = 4

# Fixed confidence per model kind, and the data bucket each kind predicts from
PREDICTION_CONFIDENCE: Dict[LearningModelKind, float] = {
    LearningModelKind.PATTERN: 0.8,
    LearningModelKind.PREFERENCE: 0.7,
    LearningModelKind.BEHAVIOR: 0.6,
    LearningModelKind.GOAL: 0.9,
}


class LearningModelError(Exception):
    """Custom exception for learning model errors."""
    pass


def _tokens(text: str) -> List[str]:
    return [token for token in TOKEN_PATTERN.findall(text.lower()) if len(token) >= MIN_TOKEN_LENGTH]


def _serialize_input(value: Any) -> str:
    if isinstance(value, str):
        return value.lower()
    return json.dumps(value, sort_keys=True, default=str).lower()


def _increment(counters: Dict[str, int], keys: List[str]) -> None:
    for key in keys:
        counters[key] = counters.get(key, 0) + 1


def _find(entries: List[Dict[str, Any]], field_name: str, value: str) -> Optional[Dict[str, Any]]:
    for entry in entries:
        if entry[field_name] == value:
            return entry
    return None


class LearningModelService:
    """Keeps one LearningModel per session.

    Models accumulate frequency tables and lists from stored memories and answer
    `predict` calls by looking up the bucket that matches the model kind.
    """

    def __init__(self, memory_config: Optional[MemoryConfig] = None, clock: Callable[[], datetime] = datetime.now):
        """
        Initialize the learning model service.

        Args:
            memory_config: MemoryConfig with history and accuracy window settings, uses default if None
            clock: Callable returning the current time
        """
        self.config = memory_config or config.memory
        self.clock = clock
        self._models: Dict[str, LearningModel] = {}
        self._locks: Dict[str, threading.Lock] = {}

        logger.info('Initialized LearningModelService')

    def _lock_for(self, session_id: str) -> threading.Lock:
        return self._locks.setdefault(session_id, threading.Lock())

    def _get_or_create(self, session_id: str) -> LearningModel:
        model = self._models.get(session_id)
        if model is None:
            model = self._models.setdefault(
                session_id,
                LearningModel(id=session_id,
                              last_updated=self.clock(),
                              predictions=deque(maxlen=self.config.prediction_history_limit)))
            logger.debug(f'Created learning model for session: {session_id}')
        return model

    def get_model(self, session_id: str) -> Optional[LearningModel]:
        return self._models.get(session_id)

    def remove(self, session_id: str) -> None:
        self._models.pop(session_id, None)
        self._locks.pop(session_id, None)

    def set_model_kind(self, session_id: str, kind: Union[LearningModelKind, str]) -> LearningModel:
        """Switch the bucket a session's predictions are drawn from.

        Args:
            session_id: Session key
            kind: pattern, preference, behavior or goal

        Returns:
            The session's LearningModel

        Raises:
            LearningModelError: If the kind is not a known model kind
        """
        try:
            kind = LearningModelKind(kind)
        except ValueError:
            raise LearningModelError(f'Unknown learning model kind: {kind}')

        with self._lock_for(session_id):
            model = self._get_or_create(session_id)
            model.kind = kind
            model.last_updated = self.clock()
        return model

    def update_learning_models(self, session_id: str, kind: MemoryKind, record: MemoryRecord) -> None:
        """Fold a newly stored memory into the session's model.

        Args:
            session_id: Session key
            kind: Tier the record was stored in
            record: The stored memory record
        """
        with self._lock_for(session_id):
            model = self._get_or_create(session_id)
            data = model.data

            if kind is MemoryKind.SHORT_TERM and isinstance(record, ShortTermMemory):
                _increment(data['patterns'], _tokens(record.content))
            elif kind is MemoryKind.EPISODIC and isinstance(record, EpisodicMemory):
                _increment(data['behaviors'], [emotion.lower() for emotion in record.emotions] or _tokens(record.event))
            elif kind is MemoryKind.LONG_TERM and isinstance(record, LongTermMemory):
                self._merge_preference(data['preferences'], record)
            elif kind is MemoryKind.SEMANTIC and isinstance(record, SemanticMemory):
                self._merge_knowledge(data['knowledge'], record)
            elif kind is MemoryKind.PROCEDURAL and isinstance(record, ProceduralMemory):
                self._merge_procedure(data['procedures'], record)
            else:
                logger.warning(f'Ignoring {type(record).__name__} stored as {kind.value} for session {session_id}')
                return

            now = self.clock()
            model.last_updated = now
            self._refresh_accuracy(model, now)

    def predict(self, session_id: str, value: Any) -> Prediction:
        """Predict the best-known match for an input from the session's model.

        Args:
            session_id: Session key
            value: Arbitrary input, matched after lower-cased serialization

        Returns:
            Prediction whose output is the top matching bucket key (None when nothing matches)
        """
        now = self.clock()
        model = self._models.get(session_id)
        if model is None:
            logger.debug(f'No learning model for session {session_id}, returning empty prediction')
            return Prediction(id=f'pred_{uuid.uuid4().hex}', input=value, output=None, confidence=0.0, timestamp=now)

        with self._lock_for(session_id):
            candidates = self._candidates(model, _serialize_input(value))
            candidates.sort(key=lambda candidate: candidate[1], reverse=True)
            prediction = Prediction(id=f'pred_{uuid.uuid4().hex}',
                                    input=value,
                                    output=candidates[0][0] if candidates else None,
                                    confidence=PREDICTION_CONFIDENCE[model.kind],
                                    timestamp=now)
            model.predictions.append(prediction)

        logger.debug(f'Prediction for session {session_id} ({model.kind.value}): {prediction.output}')
        return prediction

    def record_outcome(self, session_id: str, prediction_id: str, actual: Any) -> Optional[Prediction]:
        """Attach the observed outcome to an earlier prediction and refresh the model accuracy.

        Args:
            session_id: Session key
            prediction_id: Id returned by `predict`
            actual: Observed outcome

        Returns:
            The updated Prediction, or None if the session or prediction is unknown
        """
        model = self._models.get(session_id)
        if model is None:
            return None

        with self._lock_for(session_id):
            for prediction in model.predictions:
                if prediction.id == prediction_id:
                    prediction.actual = actual
                    prediction.accuracy = 1.0 if actual == prediction.output else 0.0
                    self._refresh_accuracy(model, self.clock())
                    return prediction

        logger.warning(f'Prediction {prediction_id} not found for session {session_id}')
        return None

    def _candidates(self, model: LearningModel, serialized: str) -> List[Tuple[str, float]]:
        data = model.data
        if model.kind is LearningModelKind.PATTERN:
            pairs = list(data['patterns'].items())
        elif model.kind is LearningModelKind.PREFERENCE:
            pairs = [(entry['content'].lower(), entry['importance']) for entry in data['preferences']]
        elif model.kind is LearningModelKind.BEHAVIOR:
            pairs = list(data['behaviors'].items())
        else:
            pairs = [(entry['skill'].lower(), entry['success_rate']) for entry in data['procedures']]
        return [(key, value) for key, value in pairs if key and key in serialized]

    def _refresh_accuracy(self, model: LearningModel, now: datetime) -> None:
        cutoff = now - timedelta(hours=self.config.accuracy_window_hours)
        recent = [p.accuracy for p in model.predictions if p.accuracy is not None and p.timestamp >= cutoff]
        if recent:
            model.accuracy = sum(recent) / len(recent)

    @staticmethod
    def _merge_preference(preferences: List[Dict[str, Any]], record: LongTermMemory) -> None:
        existing = _find(preferences, 'content', record.content)
        if existing is None:
            preferences.append({'content': record.content, 'importance': record.importance, 'context': dict(record.context)})
        else:
            existing['importance'] = max(existing['importance'], record.importance)

    @staticmethod
    def _merge_knowledge(knowledge: List[Dict[str, Any]], record: SemanticMemory) -> None:
        existing = _find(knowledge, 'concept', record.concept)
        if existing is None:
            knowledge.append({
                'concept': record.concept,
                'definition': record.definition,
                'properties': dict(record.properties),
                'relationships': {key: list(value) for key, value in record.relationships.items()},
                'confidence': record.confidence
            })
            return

        existing['properties'].update(record.properties)
        for key, related in record.relationships.items():
            merged = existing['relationships'].setdefault(key, [])
            merged.extend(item for item in related if item not in merged)
        existing['confidence'] = max(existing['confidence'], record.confidence)

    @staticmethod
    def _merge_procedure(procedures: List[Dict[str, Any]], record: ProceduralMemory) -> None:
        existing = _find(procedures, 'skill', record.skill)
        if existing is None:
            procedures.append({
                'skill': record.skill,
                'steps': list(record.steps),
                'success_rate': record.success_rate,
                'improvement': record.improvement
            })
            return

        existing['success_rate'] = (existing['success_rate'] + record.success_rate) / 2
        existing['improvement'] = max(existing['improvement'], record.improvement)
