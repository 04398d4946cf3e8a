"""
Core data models for the conversational coaching engine.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Union

from ..utils.timestamp_utils import to_datetime


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key, so camelCase and snake_case payloads both parse."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _required_date(data: Dict[str, Any], kind: str) -> datetime:
    value = _pick(data, 'date')
    if value is None:
        raise ValueError(f'{kind} entry {data.get("id", "")!r} has no date')
    return to_datetime(value)


@dataclass
class UserProfile:
    """Snapshot of the user's profile supplied by the surrounding application."""
    id: str
    name: str
    age: int
    height: float  # cm
    weight: float  # lbs
    body_fat_percentage: float
    target_physique: str
    activity_level: str
    goal_weight: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProfile':
        return cls(id=str(_pick(data, 'id', default='')),
                   name=_pick(data, 'name', default=''),
                   age=int(_pick(data, 'age', default=0)),
                   height=float(_pick(data, 'height', default=0.0)),
                   weight=float(_pick(data, 'weight', default=0.0)),
                   body_fat_percentage=float(_pick(data, 'body_fat_percentage', 'bodyFatPercentage', default=0.0)),
                   target_physique=_pick(data, 'target_physique', 'targetPhysique', default='balanced'),
                   activity_level=_pick(data, 'activity_level', 'activityLevel', default='Moderately Active'),
                   goal_weight=_pick(data, 'goal_weight', 'goalWeight'))


@dataclass
class WorkoutSession:
    """A logged workout, already parsed by the surrounding application."""
    id: str
    date: datetime
    name: str = ''
    duration: float = 0.0  # minutes
    exercises: List[Dict[str, Any]] = field(default_factory=list)
    notes: Optional[str] = None
    rpe: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkoutSession':
        """Parse a workout dict.

        Raises:
            ValueError: If the dict has no date
        """
        rpe = _pick(data, 'rpe')
        return cls(id=str(_pick(data, 'id', default='')),
                   date=_required_date(data, 'Workout'),
                   name=_pick(data, 'name', default=''),
                   duration=float(_pick(data, 'duration', default=0.0)),
                   exercises=list(_pick(data, 'exercises', default=[])),
                   notes=_pick(data, 'notes'),
                   rpe=float(rpe) if rpe is not None else None)


@dataclass
class NutritionEntry:
    """A logged food item with its macros."""
    id: str
    date: datetime
    food: str
    calories: float
    protein: float
    carbs: float
    fat: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NutritionEntry':
        """Parse a nutrition dict.

        Raises:
            ValueError: If the dict has no date
        """
        return cls(id=str(_pick(data, 'id', default='')),
                   date=_required_date(data, 'Nutrition'),
                   food=_pick(data, 'food', default=''),
                   calories=float(_pick(data, 'calories', default=0.0)),
                   protein=float(_pick(data, 'protein', default=0.0)),
                   carbs=float(_pick(data, 'carbs', default=0.0)),
                   fat=float(_pick(data, 'fat', default=0.0)))


# Entities extracted from free text. One variant per kind, each carrying only its own fields.


@dataclass(frozen=True)
class NumberEntity:
    values: List[float]
    context: str  # weight | exercise | nutrition | time | general
    kind: str = field(default='number', init=False)


@dataclass(frozen=True)
class FoodEntity:
    values: List[str]
    nutritional_value: Dict[str, int]  # counts of protein/carbs/fats sources
    kind: str = field(default='food', init=False)


@dataclass(frozen=True)
class ExerciseEntity:
    values: List[str]
    muscle_groups: List[str]
    kind: str = field(default='exercise', init=False)


@dataclass(frozen=True)
class TimeEntity:
    values: List[str]
    kind: str = field(default='time', init=False)


Entity = Union[NumberEntity, FoodEntity, ExerciseEntity, TimeEntity]


@dataclass(frozen=True)
class PatternMap:
    """Behavioral signals detected in a single message. None means no signal on that axis."""
    time_preference: Optional[str] = None
    intensity_preference: Optional[str] = None
    goal_focus: Optional[str] = None
    communication_style: Optional[str] = None

    def fired(self) -> bool:
        return any(value is not None for value in self.as_dict().values())

    def as_dict(self) -> Dict[str, str]:
        values = {
            'time_preference': self.time_preference,
            'intensity_preference': self.intensity_preference,
            'goal_focus': self.goal_focus,
            'communication_style': self.communication_style
        }
        return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class Analysis:
    """Classifier output for one message."""
    intent: str
    sentiment: str
    entities: List[Entity]
    patterns: PatternMap
    confidence: float
    urgency: float
    complexity: float
    emotional_state: str

    def entity(self, kind: str) -> Optional[Entity]:
        for entity in self.entities:
            if entity.kind == kind:
                return entity
        return None


@dataclass
class UserPreferences:
    """Preferences learned from past interactions within a session."""
    preferred_intensity: str = 'moderate'  # low | moderate | high
    preferred_workout_times: List[str] = field(default_factory=list)
    favorite_exercises: List[str] = field(default_factory=list)
    common_foods: List[str] = field(default_factory=list)
    communication_style: str = 'encouraging'  # encouraging | technical | casual | motivational
    goals: List[str] = field(default_factory=list)
    challenges: List[str] = field(default_factory=list)
    achievements: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConversationEntry:
    timestamp: datetime
    user_message: str
    ai_response: str
    intent: str
    sentiment: str
    entities: List[Entity]
    satisfaction: float = 0.8


@dataclass
class SessionContext:
    """Per-session mutable conversation state.

    The rolling message window and the conversation log are bounded deques, so the
    oldest entries drop first once the limits are reached.
    """
    session_id: str
    user_profile: Optional[UserProfile] = None
    recent_messages: Deque[str] = field(default_factory=lambda: deque(maxlen=10))
    current_goals: List[str] = field(default_factory=list)
    workout_history: List[WorkoutSession] = field(default_factory=list)
    nutrition_log: List[NutritionEntry] = field(default_factory=list)
    mood: str = 'neutral'
    last_workout_date: Optional[datetime] = None
    last_nutrition_date: Optional[datetime] = None
    user_preferences: UserPreferences = field(default_factory=UserPreferences)
    conversation_history: Deque[ConversationEntry] = field(default_factory=lambda: deque(maxlen=50))


@dataclass
class CoachResponse:
    """Response handed back to the UI layer."""
    content: str
    suggestions: List[str]
    confidence: float
    personalized: bool
    action: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'content': self.content,
            'suggestions': list(self.suggestions),
            'confidence': self.confidence,
            'personalized': self.personalized
        }
        if self.action is not None:
            payload['action'] = self.action
        if self.data is not None:
            payload['data'] = self.data
        return payload
