"""
Coaching engine: the public entry point for conversational requests.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set

from ..models.core import Analysis, CoachResponse, ConversationEntry, SessionContext, UserPreferences
from ..utils.config import EngineConfig, MemoryConfig, config
from ..utils.logging_config import get_logger
from .lexical_classifier import MUSCLE_GROUPS, NUTRIENT_SOURCES, classify
from .memory_management import MemoryManagementService
from .response_synthesis import ResponseSynthesisError, ResponseSynthesizer, create_synthesizer, fallback_response
from .session_context import ProfileLike, SessionContextStore

logger = get_logger(__name__)

# Learned style for each detected communication pattern
STYLE_PREFERENCES = {'polite': 'encouraging', 'casual': 'casual', 'technical': 'technical'}

# Actions whose suggestions are worth remembering as a procedure
PLAN_ACTIONS = ('workout_help', 'nutrition_help', 'planning_help', 'workout_nutrition_plan')


def _append_unique(values: list, value: str) -> None:
    if value not in values:
        values.append(value)


def learn_preferences(preferences: UserPreferences, analysis: Analysis) -> None:
    """Fold the signals of one message into the session's learned preferences."""
    patterns = analysis.patterns
    if patterns.time_preference:
        _append_unique(preferences.preferred_workout_times, patterns.time_preference)
    if patterns.intensity_preference:
        preferences.preferred_intensity = patterns.intensity_preference
    if patterns.communication_style:
        preferences.communication_style = STYLE_PREFERENCES.get(patterns.communication_style, preferences.communication_style)
    if patterns.goal_focus:
        _append_unique(preferences.goals, patterns.goal_focus)

    exercise = analysis.entity('exercise')
    if exercise is not None:
        for name in exercise.values:
            _append_unique(preferences.favorite_exercises, name)
    food = analysis.entity('food')
    if food is not None:
        for name in food.values:
            _append_unique(preferences.common_foods, name)


class CoachingEngine:
    """Classifies a message, answers it, and learns from it in the background.

    All per-session state lives in the injected stores. Requests for the same session
    are serialized by a per-session lock; different sessions never share one.
    """

    def __init__(self,
                 contexts: Optional[SessionContextStore] = None,
                 memory: Optional[MemoryManagementService] = None,
                 synthesizer: Optional[ResponseSynthesizer] = None,
                 engine_config: Optional[EngineConfig] = None,
                 memory_config: Optional[MemoryConfig] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """
        Initialize the coaching engine.

        Args:
            contexts: SessionContextStore, created from config if None
            memory: MemoryManagementService (with its learning models), created from config if None
            synthesizer: ResponseSynthesizer, built for the configured backend if None
            engine_config: EngineConfig, uses default if None
            memory_config: MemoryConfig, uses default if None
            clock: Callable returning the current time
        """
        self.config = engine_config or config.engine
        self.memory_config = memory_config or config.memory
        self.clock = clock
        self.memory = memory or MemoryManagementService(memory_config=self.memory_config, clock=clock)
        self.learning_models = self.memory.learning_models
        self.contexts = contexts or SessionContextStore(self.config, on_evict=self._forget)
        self.synthesizer = synthesizer or create_synthesizer(self.config.synthesizer_backend, clock=clock)

        # session id -> [lock, number of threads holding or waiting on it]
        self._session_locks: Dict[str, List[Any]] = {}
        self._retired: Set[str] = set()
        self._locks_guard = threading.Lock()
        self._last_cleanup: Dict[str, datetime] = {}
        self._executor = None
        if self.config.async_memory_writes:
            self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix='fitcoach-memory')
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

        logger.info(f'Initialized CoachingEngine (synthesizer={type(self.synthesizer).__name__}, '
                    f'async_memory_writes={self.config.async_memory_writes})')

    def __enter__(self) -> 'CoachingEngine':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.shutdown()

    @contextmanager
    def _session(self, session_id: str) -> Iterator[None]:
        """Hold the session's lock.

        Locks are reference counted so an evicted session's lock is dropped once the
        last thread using it lets go, and its memory is purged at that point.
        """
        with self._locks_guard:
            entry = self._session_locks.get(session_id)
            if entry is None:
                entry = self._session_locks[session_id] = [threading.Lock(), 0]
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            purge = False
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0 and session_id in self._retired:
                    self._retired.discard(session_id)
                    self._session_locks.pop(session_id, None)
                    purge = True
            if purge and session_id not in self.contexts:
                self._purge(session_id)

    def generate_response(self,
                          message: Optional[str],
                          user_profile: ProfileLike = None,
                          workout_history: Optional[Iterable[Any]] = None,
                          nutrition_log: Optional[Iterable[Any]] = None,
                          session_id: str = 'default') -> CoachResponse:
        """Answer one user message.

        Args:
            message: Free-text user message
            user_profile: UserProfile or profile dict, None if the user has no profile
            workout_history: Logged workouts (WorkoutSession or dicts)
            nutrition_log: Logged food entries (NutritionEntry or dicts)
            session_id: Session key (default: 'default')

        Returns:
            CoachResponse, the fixed apology response if anything fails
        """
        try:
            with self._session(session_id):
                context = self.contexts.get_or_create(session_id, user_profile, workout_history, nutrition_log)
                self.contexts.record_message(context, message or '')
                analysis = classify(message, context)
                self.contexts.update_mood(context, analysis.emotional_state)
                response = self.synthesizer.respond(analysis, context)
        except ResponseSynthesisError as e:
            logger.error(f'Response synthesis error for session {session_id}: {e}')
            return fallback_response()
        except Exception as e:
            logger.error(f'Unexpected error generating response for session {session_id}: {e}')
            return fallback_response()

        self._dispatch(session_id, message or '', analysis, response, self.clock())
        return response

    def get_memory_stats(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Memory tier counts and learning model summary for a session.

        Args:
            session_id: Session key

        Returns:
            Dict with short_term, long_term, episodic, semantic, procedural, total, model_accuracy
            and prediction_count, or None if the session has no memory yet
        """
        stats: Optional[Dict[str, Any]] = self.memory.stats(session_id)
        if stats is None:
            return None

        model = self.learning_models.get_model(session_id)
        stats['model_accuracy'] = model.accuracy if model is not None else 0.5
        stats['prediction_count'] = len(model.predictions) if model is not None else 0
        return stats

    def get_context(self, session_id: str) -> Optional[SessionContext]:
        return self.contexts.get(session_id)

    def wait_for_pending(self, timeout: Optional[float] = None) -> bool:
        """Block until queued memory updates finish.

        Returns:
            True if everything finished within the timeout
        """
        with self._pending_lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait_for_pending)
            logger.info('CoachingEngine background executor stopped')

    def _dispatch(self, session_id: str, message: str, analysis: Analysis, response: CoachResponse, timestamp: datetime) -> None:
        if self._executor is None:
            self._learn(session_id, message, analysis, response, timestamp)
            return

        try:
            future = self._executor.submit(self._learn, session_id, message, analysis, response, timestamp)
        except RuntimeError as e:
            logger.warning(f'Skipping memory update for session {session_id}: {e}')
            return

        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)

    def _discard_pending(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _learn(self, session_id: str, message: str, analysis: Analysis, response: CoachResponse, timestamp: datetime) -> None:
        try:
            with self._session(session_id):
                context = self.contexts.get(session_id)
                if context is None:
                    logger.debug(f'Session {session_id} evicted before its memory update ran')
                    self._retire(session_id)
                    return

                context.conversation_history.append(
                    ConversationEntry(timestamp=timestamp,
                                      user_message=message,
                                      ai_response=response.content,
                                      intent=analysis.intent,
                                      sentiment=analysis.sentiment,
                                      entities=list(analysis.entities)))
                learn_preferences(context.user_preferences, analysis)
                self._remember(session_id, message, analysis, response)
                self._maybe_cleanup(session_id)
        except Exception as e:
            logger.error(f'Background memory update failed for session {session_id}: {e}')

    def _remember(self, session_id: str, message: str, analysis: Analysis, response: CoachResponse) -> None:
        text = message.strip()
        if not text:
            return

        self.memory.store_short_term(session_id,
                                     text,
                                     importance=0.5 + 0.5 * analysis.urgency,
                                     context={
                                         'intent': analysis.intent,
                                         'sentiment': analysis.sentiment
                                     })

        if analysis.emotional_state != 'neutral':
            self.memory.store_episodic(session_id,
                                       f'User felt {analysis.emotional_state} while talking about {analysis.intent}',
                                       context={'intent': analysis.intent, 'message': text},
                                       emotions=[analysis.emotional_state],
                                       significance=0.7 if analysis.sentiment in ('negative', 'urgent') else 0.5)

        exercise = analysis.entity('exercise')
        if exercise is not None:
            for name in exercise.values:
                muscles = list(MUSCLE_GROUPS.get(name, ()))
                self.memory.store_semantic(session_id,
                                           name,
                                           'Exercise mentioned by the user',
                                           properties={'type': 'exercise'},
                                           relationships={'muscle_groups': muscles} if muscles else None)

        food = analysis.entity('food')
        if food is not None:
            for name in food.values:
                nutrients = [nutrient for nutrient, sources in NUTRIENT_SOURCES.items() if name in sources]
                self.memory.store_semantic(session_id,
                                           name,
                                           'Food mentioned by the user',
                                           properties={'type': 'food'},
                                           relationships={'nutrients': nutrients} if nutrients else None)

        for axis, value in analysis.patterns.as_dict().items():
            self.memory.store_long_term(session_id, f'{axis}: {value}', importance=0.8, context={'intent': analysis.intent})

        if response.action in PLAN_ACTIONS:
            self.memory.store_procedural(session_id, response.action, steps=list(response.suggestions), success_rate=response.confidence)

    def _maybe_cleanup(self, session_id: str) -> None:
        now = self.clock()
        last = self._last_cleanup.get(session_id)
        if last is None:
            self._last_cleanup[session_id] = now
            return
        if now - last < timedelta(hours=self.memory_config.cleanup_interval_hours):
            return

        self._last_cleanup[session_id] = now
        self.memory.consolidate(session_id, now=now)
        self.memory.cleanup(session_id, now=now)

    def _retire(self, session_id: str) -> bool:
        """Drop the session's lock now if nobody uses it, else once the last user releases it.

        Returns:
            True if the lock was dropped immediately
        """
        with self._locks_guard:
            entry = self._session_locks.get(session_id)
            if entry is None or entry[1] == 0:
                self._session_locks.pop(session_id, None)
                self._retired.discard(session_id)
                return True
            self._retired.add(session_id)
            return False

    def _forget(self, session_id: str) -> None:
        # Purging while a background update still writes would let it recreate the bank
        if self._retire(session_id):
            self._purge(session_id)

    def _purge(self, session_id: str) -> None:
        self.memory.remove(session_id)
        self._last_cleanup.pop(session_id, None)
        logger.debug(f'Forgot memory of evicted session: {session_id}')
