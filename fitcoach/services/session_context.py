"""
Session context store keyed by session id.
"""

import threading
from collections import OrderedDict, deque
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, TypeVar, Union

from ..models.core import NutritionEntry, SessionContext, UserProfile, WorkoutSession
from ..utils.config import EngineConfig, config
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

ProfileLike = Union[UserProfile, Dict[str, Any], None]
T = TypeVar('T', WorkoutSession, NutritionEntry)


def _as_profile(profile: ProfileLike) -> Optional[UserProfile]:
    if profile is None or isinstance(profile, UserProfile):
        return profile
    return UserProfile.from_dict(profile)


def _parse_dated(items: Optional[Iterable[Any]], model: Type[T]) -> List[T]:
    """Convert dicts to `model`, dropping entries without a date so they never count as today."""
    parsed: List[T] = []
    for item in items or []:
        if isinstance(item, model):
            parsed.append(item)
            continue
        try:
            parsed.append(model.from_dict(item))
        except ValueError as e:
            logger.warning(f'Skipping {model.__name__} entry: {e}')
    return parsed


def _as_workouts(workouts: Optional[Iterable[Any]]) -> List[WorkoutSession]:
    return _parse_dated(workouts, WorkoutSession)


def _as_nutrition(entries: Optional[Iterable[Any]]) -> List[NutritionEntry]:
    return _parse_dated(entries, NutritionEntry)


class SessionContextStore:
    """Owns one SessionContext per session id.

    Contexts are created on first use and refreshed on every message. With `max_sessions`
    set, the least recently used session is evicted once the cap is exceeded.
    """

    def __init__(self, engine_config: Optional[EngineConfig] = None, on_evict: Optional[Callable[[str], None]] = None):
        """
        Initialize the session context store.

        Args:
            engine_config: EngineConfig with window sizes and session cap, uses default if None
            on_evict: Callback receiving the session id of each evicted context
        """
        self.config = engine_config or config.engine
        self.on_evict = on_evict
        self._contexts: 'OrderedDict[str, SessionContext]' = OrderedDict()
        self._lock = threading.Lock()

        logger.info(f'Initialized SessionContextStore (max_sessions={self.config.max_sessions or "unbounded"})')

    def get(self, session_id: str) -> Optional[SessionContext]:
        with self._lock:
            return self._contexts.get(session_id)

    def get_or_create(self,
                      session_id: str,
                      user_profile: ProfileLike = None,
                      workout_history: Optional[Iterable[Any]] = None,
                      nutrition_log: Optional[Iterable[Any]] = None) -> SessionContext:
        """Fetch the session's context, creating it if needed, and refresh the caller-supplied snapshots.

        Args:
            session_id: Session key
            user_profile: UserProfile or profile dict, None when the user has no profile yet
            workout_history: Workout sessions or dicts
            nutrition_log: Nutrition entries or dicts

        Returns:
            The session's SessionContext
        """
        profile = _as_profile(user_profile)
        workouts = _as_workouts(workout_history)
        nutrition = _as_nutrition(nutrition_log)

        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                context = SessionContext(session_id=session_id,
                                         recent_messages=deque(maxlen=self.config.message_window),
                                         conversation_history=deque(maxlen=self.config.history_limit))
                self._contexts[session_id] = context
                logger.debug(f'Created session context: {session_id}')
                self._evict()
            else:
                self._contexts.move_to_end(session_id)

        context.user_profile = profile
        context.workout_history = workouts
        context.nutrition_log = nutrition
        context.current_goals = [profile.target_physique] if profile is not None else []
        context.last_workout_date = max((workout.date for workout in workouts), default=None)
        context.last_nutrition_date = max((entry.date for entry in nutrition), default=None)
        return context

    def record_message(self, context: SessionContext, message: str) -> None:
        """Append a raw user message to the rolling window."""
        context.recent_messages.append(message)

    def update_mood(self, context: SessionContext, emotional_state: str) -> None:
        if emotional_state and emotional_state != 'neutral':
            context.mood = emotional_state

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._contexts.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._contexts

    def _evict(self) -> None:
        if self.config.max_sessions <= 0:
            return
        while len(self._contexts) > self.config.max_sessions:
            evicted, _ = self._contexts.popitem(last=False)
            logger.info(f'Evicted least recently used session context: {evicted}')
            if self.on_evict is not None:
                self.on_evict(evicted)
