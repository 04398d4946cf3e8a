"""
Lexical classifier for incoming user messages.

Everything here is keyword matching over the lower-cased message. The functions are
pure and never raise, so the engine can call them without guarding.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from ..models.core import Analysis, Entity, ExerciseEntity, FoodEntity, NumberEntity, PatternMap, SessionContext, TimeEntity
from ..utils.logging_config import get_logger
from .pattern_detection import detect_patterns

logger = get_logger(__name__)

# Checked in this order; compound intents are joined in the same order.
INTENT_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('workout', ('workout', 'exercise', 'gym', 'train', 'training', 'lift', 'lifting', 'cardio', 'strength', 'muscle', 'gains',
                 'squat', 'deadlift', 'bench', 'press', 'curl', 'row', 'pull', 'push')),
    ('nutrition', ('food', 'eat', 'meal', 'nutrition', 'diet', 'calorie', 'protein', 'carbs', 'fat', 'breakfast', 'lunch',
                   'dinner', 'snack', 'macro', 'supplement', 'vitamin')),
    ('progress', ('progress', 'how am i doing', 'analytics', 'stats', 'results', 'improvement', 'gains', 'loss', 'weight',
                  'muscle', 'strength', 'performance')),
    ('advice', ('help', 'advice', 'tips', 'how to', 'what should', 'recommend', 'suggest', 'best way', 'optimal', 'efficient',
                'effective')),
    # 'hard' is left out: it signals intensity, not a need for encouragement
    ('motivation', ('motivate', 'motivation', 'encourage', 'support', 'struggle', 'difficult', 'tired', 'exhausted', 'frustrated',
                    'stuck')),
    ('planning', ('plan', 'schedule', 'routine', 'program', 'regimen', 'structure', 'organize', 'arrange', 'coordinate')),
)

POSITIVE_WORDS = ('great', 'awesome', 'amazing', 'excellent', 'fantastic', 'wonderful', 'love', 'enjoy', 'proud', 'accomplished',
                  'achieved', 'success', 'win', 'victory', 'happy', 'excited', 'motivated', 'energized', 'confident', 'strong',
                  'powerful')
NEGATIVE_WORDS = ('bad', 'terrible', 'awful', 'hate', 'dislike', 'frustrated', 'angry', 'sad', 'disappointed', 'discouraged',
                  'weak', 'tired', 'exhausted', 'struggling', 'difficult', 'hard', 'challenging', 'stuck', 'plateau')
URGENT_SENTIMENT_WORDS = ('urgent', 'asap', 'immediately', 'quickly', 'fast', 'emergency', 'crisis', 'help now', 'need help',
                          'stuck', 'problem')

URGENCY_WORDS = ('urgent', 'asap', 'immediately', 'quickly', 'emergency', 'crisis')
COMPLEXITY_WORDS = ('analyze', 'optimize', 'calculate', 'formula', 'algorithm', 'methodology')

EMOTIONAL_STATES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('excited', ('excited', 'pumped', 'ready')),
    ('tired', ('tired', 'exhausted', 'drained')),
    ('frustrated', ('frustrated', 'stuck', 'plateau')),
    ('confident', ('confident', 'strong', 'powerful')),
    ('anxious', ('nervous', 'anxious', 'worried')),
)

NUMBER_PATTERN = re.compile(r'\d+(\.\d+)?')
NUMBER_CONTEXTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('weight', ('weight', 'kg', 'lb')),
    ('exercise', ('rep', 'set')),
    ('nutrition', ('calorie', 'cal')),
    ('time', ('minute', 'hour')),
)

FOOD_KEYWORDS = ('chicken', 'beef', 'fish', 'salmon', 'tuna', 'eggs', 'milk', 'cheese', 'yogurt', 'rice', 'pasta', 'bread',
                 'potato', 'sweet potato', 'quinoa', 'oats', 'banana', 'apple', 'orange', 'berries', 'avocado', 'spinach',
                 'broccoli', 'protein', 'carbs', 'calories', 'fat', 'fiber', 'vitamin', 'mineral')
NUTRIENT_SOURCES: Dict[str, Tuple[str, ...]] = {
    'protein': ('chicken', 'beef', 'fish', 'eggs', 'milk', 'cheese', 'yogurt'),
    'carbs': ('rice', 'pasta', 'bread', 'potato', 'quinoa', 'oats', 'banana'),
    'fats': ('avocado', 'nuts', 'olive oil', 'cheese'),
}

EXERCISE_KEYWORDS = ('squat', 'deadlift', 'bench press', 'overhead press', 'bicep curl', 'tricep extension', 'row', 'pull-up',
                     'push-up', 'dip', 'lunge', 'leg press', 'calf raise', 'plank', 'crunch', 'sit-up', 'burpee',
                     'mountain climber')
MUSCLE_GROUPS: Dict[str, Tuple[str, ...]] = {
    'squat': ('quadriceps', 'glutes', 'hamstrings'),
    'deadlift': ('hamstrings', 'glutes', 'back', 'traps'),
    'bench press': ('chest', 'triceps', 'shoulders'),
    'overhead press': ('shoulders', 'triceps'),
    'bicep curl': ('biceps',),
    'row': ('back', 'biceps', 'rear delts'),
}

TIME_KEYWORDS = ('morning', 'afternoon', 'evening', 'night', 'today', 'tomorrow', 'yesterday', 'this week', 'next week', 'monday',
                 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

BASE_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95


def _matches(text: str, keywords: Sequence[str]) -> List[str]:
    return [keyword for keyword in keywords if keyword in text]


def detect_intent(text: str) -> str:
    """Resolve the intent label of a lower-cased message.

    Args:
        text: Lower-cased message

    Returns:
        'general', a single label, or matching labels joined with '_' in check order
    """
    labels = [label for label, keywords in INTENT_KEYWORDS if _matches(text, keywords)]
    if not labels:
        return 'general'
    return '_'.join(labels)


def detect_sentiment(text: str) -> str:
    if _matches(text, URGENT_SENTIMENT_WORDS):
        return 'urgent'
    positive = len(_matches(text, POSITIVE_WORDS))
    negative = len(_matches(text, NEGATIVE_WORDS))
    if positive > negative:
        return 'positive'
    if negative > positive:
        return 'negative'
    return 'neutral'


def detect_urgency(text: str) -> float:
    return min(len(_matches(text, URGENCY_WORDS)) / 2, 1.0)


def detect_complexity(text: str) -> float:
    return min(len(_matches(text, COMPLEXITY_WORDS)) / 3, 1.0)


def detect_emotional_state(text: str) -> str:
    for state, keywords in EMOTIONAL_STATES:
        if _matches(text, keywords):
            return state
    return 'neutral'


def _number_context(text: str) -> str:
    for context, keywords in NUMBER_CONTEXTS:
        if _matches(text, keywords):
            return context
    return 'general'


def _muscle_groups(exercises: List[str]) -> List[str]:
    groups: List[str] = []
    for exercise in exercises:
        for group in MUSCLE_GROUPS.get(exercise, ()):
            if group not in groups:
                groups.append(group)
    return groups


def extract_entities(text: str) -> List[Entity]:
    """Extract number, food, exercise and time entities, at most one of each, in that order.

    Args:
        text: Lower-cased message

    Returns:
        List of entities
    """
    entities: List[Entity] = []

    numbers = [float(match.group(0)) for match in NUMBER_PATTERN.finditer(text)]
    if numbers:
        entities.append(NumberEntity(values=numbers, context=_number_context(text)))

    foods = _matches(text, FOOD_KEYWORDS)
    if foods:
        nutritional_value = {nutrient: sum(1 for food in foods if food in sources) for nutrient, sources in NUTRIENT_SOURCES.items()}
        entities.append(FoodEntity(values=foods, nutritional_value=nutritional_value))

    exercises = _matches(text, EXERCISE_KEYWORDS)
    if exercises:
        entities.append(ExerciseEntity(values=exercises, muscle_groups=_muscle_groups(exercises)))

    times = _matches(text, TIME_KEYWORDS)
    if times:
        entities.append(TimeEntity(values=times))

    return entities


def calculate_confidence(intent: str, sentiment: str, entities: List[Entity], context: Optional[SessionContext]) -> float:
    confidence = BASE_CONFIDENCE
    if intent != 'general':
        confidence += 0.2
    if entities:
        confidence += min(len(entities) * 0.1, 0.3)
    if context is not None:
        if context.user_profile is not None:
            confidence += 0.2
        if context.conversation_history:
            confidence += min(len(context.conversation_history) * 0.02, 0.1)
    if sentiment != 'neutral':
        confidence += 0.1
    return round(min(confidence, MAX_CONFIDENCE), 4)


def classify(message: Optional[str], context: Optional[SessionContext] = None) -> Analysis:
    """Classify a user message.

    Args:
        message: Raw user message, may be empty or None
        context: Session context used for confidence boosts (optional)

    Returns:
        Analysis with intent, sentiment, entities, patterns, confidence, urgency, complexity and emotional state
    """
    text = (message or '').strip().lower()
    if not text:
        logger.debug('Empty message classified as general')
        return Analysis(intent='general',
                        sentiment='neutral',
                        entities=[],
                        patterns=PatternMap(),
                        confidence=BASE_CONFIDENCE,
                        urgency=0.0,
                        complexity=0.0,
                        emotional_state='neutral')

    intent = detect_intent(text)
    sentiment = detect_sentiment(text)
    entities = extract_entities(text)
    analysis = Analysis(intent=intent,
                        sentiment=sentiment,
                        entities=entities,
                        patterns=detect_patterns(text, context),
                        confidence=calculate_confidence(intent, sentiment, entities, context),
                        urgency=detect_urgency(text),
                        complexity=detect_complexity(text),
                        emotional_state=detect_emotional_state(text))

    logger.debug(f'Classified message as intent={analysis.intent} sentiment={analysis.sentiment} '
                 f'entities={[entity.kind for entity in entities]} confidence={analysis.confidence}')
    return analysis
