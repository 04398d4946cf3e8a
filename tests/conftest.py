from datetime import datetime, timedelta

import pytest

from fitcoach.models.core import NutritionEntry, SessionContext, UserProfile, WorkoutSession
from fitcoach.services.coaching_engine import CoachingEngine
from fitcoach.services.learning_models import LearningModelService
from fitcoach.services.memory_management import MemoryManagementService
from fitcoach.services.response_synthesis import IndexSelector, TemplateResponseSynthesizer
from fitcoach.services.session_context import SessionContextStore
from fitcoach.utils.config import EngineConfig, MemoryConfig

NOW = datetime(2024, 6, 15, 12, 0, 0)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine_config():
    return EngineConfig(message_window=10,
                        history_limit=50,
                        suggestion_limit=6,
                        synthesizer_backend='template',
                        async_memory_writes=False,
                        max_workers=2,
                        max_sessions=0,
                        template_seed=7)


@pytest.fixture
def memory_config():
    return MemoryConfig(retention_days=7,
                        retention_importance=0.8,
                        consolidation_importance=0.7,
                        cleanup_interval_hours=24,
                        prediction_history_limit=100,
                        accuracy_window_hours=24)


@pytest.fixture
def profile():
    return UserProfile(id='u1',
                       name='Sam',
                       age=29,
                       height=180.0,
                       weight=185.0,
                       body_fat_percentage=18.0,
                       target_physique='athletic',
                       activity_level='Moderately Active')


@pytest.fixture
def context(profile):
    return SessionContext(session_id='s1', user_profile=profile, current_goals=[profile.target_physique])


@pytest.fixture
def learning_models(memory_config, clock):
    return LearningModelService(memory_config, clock=clock)


@pytest.fixture
def memory(learning_models, memory_config, clock):
    return MemoryManagementService(learning_models, memory_config, clock=clock)


@pytest.fixture
def synthesizer(clock):
    return TemplateResponseSynthesizer(IndexSelector(0), clock=clock)


@pytest.fixture
def engine(engine_config, memory_config, memory, synthesizer, clock):
    engine = CoachingEngine(memory=memory,
                            synthesizer=synthesizer,
                            engine_config=engine_config,
                            memory_config=memory_config,
                            clock=clock)
    yield engine
    engine.shutdown()


@pytest.fixture
def store(engine_config):
    return SessionContextStore(engine_config)


@pytest.fixture
def make_workout(clock):

    def make(days_ago: float, **kwargs) -> WorkoutSession:
        return WorkoutSession(id=f'w{days_ago}', date=clock.now - timedelta(days=days_ago), name='Session', **kwargs)

    return make


@pytest.fixture
def make_meal(clock):

    def make(food: str, calories: float, protein: float, carbs: float, fat: float, days_ago: float = 0) -> NutritionEntry:
        return NutritionEntry(id=f'n-{food}',
                              date=clock.now - timedelta(days=days_ago),
                              food=food,
                              calories=calories,
                              protein=protein,
                              carbs=carbs,
                              fat=fat)

    return make
