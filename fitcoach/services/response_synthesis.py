"""
Response synthesis from classifier output and session context.

Two synthesizers share one contract: the template synthesizer picks pre-written
variants through an injectable selector, the Bedrock synthesizer asks an LLM for
the text. Both add the same entity suggestions, urgency marker and data payload.
"""

import json
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from ..models.core import Analysis, CoachResponse, ExerciseEntity, FoodEntity, NumberEntity, SessionContext, UserProfile
from ..utils.bedrock_llm import BedrockLLM, BedrockLLMError
from ..utils.config import config
from ..utils.json_utils import clean_json_response
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import days_between

logger = get_logger(__name__)

T = TypeVar('T')

SUGGESTION_LIMIT = 6
URGENCY_THRESHOLD = 0.5
URGENCY_MARKER = '🚨'
DEFAULT_STYLE = 'encouraging'

FALLBACK_CONTENT = 'I apologize, but I encountered an error processing your request. Please try again.'
FALLBACK_SUGGESTIONS = ('Try again', 'Ask something else', 'Get help')


class ResponseSynthesisError(Exception):
    """Custom exception for response synthesis errors."""
    pass


def fallback_response() -> CoachResponse:
    """The fixed apology returned when a response cannot be produced."""
    return CoachResponse(content=FALLBACK_CONTENT,
                         suggestions=list(FALLBACK_SUGGESTIONS),
                         confidence=0.3,
                         personalized=False,
                         action='error_recovery')


# Template selection


class TemplateSelector(ABC):
    """Chooses one variant from a pool."""

    @abstractmethod
    def choose(self, options: Sequence[T]) -> T:
        pass


class RandomSelector(TemplateSelector):
    """Uniform random choice, reproducible when seeded."""

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    def choose(self, options: Sequence[T]) -> T:
        return self._random.choice(options)


class IndexSelector(TemplateSelector):
    """Always picks the same position (modulo the pool size)."""

    def __init__(self, index: int = 0):
        self.index = index

    def choose(self, options: Sequence[T]) -> T:
        return options[self.index % len(options)]


# Template tables

WORKOUT_NO_PROFILE = (
    "I'd love to help with your workouts! Please complete your profile first so I can give you personalized workout recommendations.",
    "Ready to start your fitness journey? Complete your profile and I'll create custom workouts just for you!",
    "Let's get you set up! Fill out your profile and I'll design workouts tailored to your goals.",
    "I'm excited to help you train! First, let's complete your profile so I can create the perfect workout plan.",
)
WORKOUT_FIRST_SESSION = (
    "Welcome to your fitness journey! As a {physique}, I'll create personalized workouts to help you reach your goals. "
    "Let's start with a comprehensive workout plan!",
    "Ready to transform your body? Your {physique} goals are achievable with the right training. Let's build your perfect workout routine!",
    "Time to unleash your potential! I'll design workouts specifically for your {physique} aspirations. Let's get started!",
    "Your fitness journey begins now! As a {physique}, I'll create workouts that push you to your limits. Ready to dominate?",
)
WORKOUT_SAME_DAY = (
    'Amazing work today! Your {physique} goals are within reach. Ready for your next challenge?',
    "You crushed it! Your dedication to becoming a {physique} is inspiring. What's next?",
    "Outstanding performance! You're one step closer to your {physique} goals. Let's keep this momentum!",
    'Incredible effort! Your {physique} transformation is happening. Ready for more?',
)
WORKOUT_NEXT_DAY = (
    'Perfect timing! Your consistency is paying off. Let me create an optimized session for your {physique} goals.',
    'Right on schedule! I love your dedication. Time for another powerful workout designed for your {physique} aspirations.',
    "Excellent timing! Your commitment is showing. Let's build on your progress with a targeted {physique} workout.",
    'Perfect! Your discipline is impressive. Ready for another session that will push your {physique} goals forward?',
)
WORKOUT_SHORT_BREAK = (
    "No worries about the {days} day break! Let's get back on track with a motivating session for your {physique} goals.",
    'A {days} day pause is totally fine! Time to reignite your passion with a fresh workout designed for your {physique} aspirations.',
    "Don't stress about the {days} day gap! Let's bounce back stronger with a workout that will reignite your {physique} journey.",
    "The {days} day break is behind us! Let's get back to crushing your {physique} goals with renewed energy.",
)
WORKOUT_LONG_BREAK = (
    "Let's restart your momentum! A fresh, energizing session tailored to your {physique} goals will get you back on track.",
    "Time to reignite your passion! I'll create a powerful workout that will remind you why you're pursuing your {physique} dreams.",
    "Let's get back to greatness! A motivating session designed for your {physique} goals will jumpstart your journey again.",
    "Ready to reclaim your power? Let's restart with a workout that will reignite your {physique} transformation.",
)
WORKOUT_CHIPS = ('Generate new workout', 'Modify current workout', 'Show workout tips', 'Track my progress')

NUTRITION_NO_PROFILE = (
    "I'd love to help with your nutrition! Please complete your profile first so I can calculate your personalized macro targets.",
    "Ready to optimize your diet? Complete your profile and I'll create a nutrition plan tailored to your goals!",
    "Let's fuel your success! Fill out your profile and I'll design a meal plan that works for you.",
    "Time to eat smart! Complete your profile and I'll calculate your perfect macro targets.",
)
NUTRITION_NOTHING_LOGGED = (
    "Let's fuel your {physique} goals! I'll help you track your nutrition and create a meal plan that supports your training. "
    'What would you like to log first?',
    "Time to optimize your nutrition for your {physique} transformation! Let's track your food and create the perfect meal plan. "
    'What should we start with?',
    "Ready to eat for your goals? I'll help you fuel your {physique} journey with smart nutrition tracking. What's first on your plate?",
    "Let's get your nutrition dialed in! Your {physique} goals need proper fuel. What would you like to track first?",
)
NUTRITION_LOGGED_TODAY = (
    "Excellent nutrition tracking! You've logged {calories} calories ({protein:.1f}g protein, {carbs:.1f}g carbs, {fat:.1f}g fat). "
    "For your {physique} goals, I can help optimize your macro balance. What's next?",
    'Great job on your nutrition! {calories} calories with {protein:.1f}g protein, {carbs:.1f}g carbs, and {fat:.1f}g fat. '
    "Let's fine-tune this for your {physique} success!",
    'Outstanding tracking! {calories} calories logged with solid macros ({protein:.1f}g protein, {carbs:.1f}g carbs, {fat:.1f}g fat). '
    'Ready to optimize for your {physique} goals?',
    "Perfect nutrition logging! You're at {calories} calories with {protein:.1f}g protein, {carbs:.1f}g carbs, and {fat:.1f}g fat. "
    "Let's make this work for your {physique} transformation!",
)
NUTRITION_CHIPS = ('Create meal plan', 'Track my food', 'Calculate macros', 'Get nutrition advice')

PROFILE_SETUP_CHIPS = {
    'workout': ('Complete my profile', 'Get general workout tips', 'Learn about exercises'),
    'nutrition': ('Complete my profile', 'Get general nutrition tips', 'Learn about macros'),
}

PROGRESS_SUMMARY = ("Here's your progress summary:\n\n**This Week:**\n• Workouts completed: {workouts}\n"
                    '• Average daily calories: {calories}\n• Consistency: {consistency}\n\n')
PROGRESS_CHIPS = ('Show detailed analytics', 'Set new goals', 'Adjust my plan', 'Celebrate achievements')
PROGRESS_WINDOW = 7

ADVICE_TIPS = (
    '**Consistency is key** - Stick to your plan 80% of the time for optimal results',
    '**Progressive overload** - Gradually increase weight, reps, or intensity',
    '**Recovery matters** - Get 7-9 hours of quality sleep for muscle growth',
    '**Nutrition timing** - Eat protein within 2 hours post-workout',
    '**Track everything** - Monitor your progress to stay motivated',
)
ADVICE_CHIPS = ('Get workout tips', 'Learn about nutrition', 'Improve recovery', 'Stay motivated')

MOTIVATION_MESSAGES = (
    "You've got this! Every step forward is progress, no matter how small.",
    "Remember why you started this journey. You're stronger than you think!",
    "Progress isn't always linear, but consistency will get you there.",
    "You're not just building muscle, you're building character and discipline.",
    'Every workout is an investment in your future self. Keep going!',
)
MOTIVATION_CHIPS = ('Get more motivation', 'Share my progress', 'Set new goals', 'Get support')

PLANNING_CONTENT = "I'll help you create a structured plan that fits your lifestyle and goals. Let's organize your fitness journey!"
PLANNING_CHIPS = ('Create workout schedule', 'Plan meal prep', 'Set weekly goals', 'Organize my routine')

WORKOUT_NUTRITION_CONTENT = ("Perfect! Let's create a comprehensive plan that combines your workouts with optimal nutrition "
                             'for maximum results.')
WORKOUT_NUTRITION_CHIPS = ('Create workout + meal plan', 'Track post-workout nutrition', 'Optimize training nutrition',
                           'Plan recovery meals')

GENERAL_CONTENT = ("I'm your intelligent AI fitness coach! I learn from your patterns and adapt to your preferences. I can help with:\n\n"
                   '• **Personalized workouts** - Tailored to your goals and preferences\n'
                   '• **Smart nutrition planning** - Science-based macro calculations\n'
                   '• **Progress tracking** - Analytics and insights\n'
                   '• **Adaptive recommendations** - That improve over time\n\n'
                   'What would you like to work on today?')
GENERAL_CHIPS = ('Help with workouts', 'Plan my meals', 'Track my progress', 'Get fitness advice')

# Openers applied when the learned communication style is not the default
OPENERS: Dict[str, Sequence[str]] = {
    'workout': ("Let's get you moving! 💪", 'Time to crush your workout! 🔥', 'Ready to build some strength? 🏋️',
                "Let's make those gains! 💯", 'Time to push your limits! 🚀', "Let's turn up the intensity! ⚡",
                'Ready to dominate today? 👑', "Let's build that power! 💥", 'Time to sweat it out! 💦', "Let's get after it! 🎯"),
    'nutrition': ("Let's fuel your body right! 🥗", 'Time to optimize your nutrition! 🍎', "Let's get those macros dialed in! 📊",
                  'Ready to eat for your goals? 🎯', "Let's nourish those muscles! 🥩", 'Time to feed your gains! 🍗',
                  "Let's fuel your performance! ⚡", 'Ready to optimize your diet? 🥑', "Let's get those nutrients! 🌟",
                  'Time to eat smart! 🧠'),
    'progress': ("Let's see how you're doing! 📈", 'Time to check your progress! 📊', "Let's analyze your results! 🔍",
                 'Ready to see your improvements? 🎉', "Let's track your success! 🏆", 'Time to measure your gains! 📏',
                 "Let's review your journey! 🗺️", 'Ready to see your growth? 🌱', "Let's celebrate your wins! 🎊",
                 'Time to assess your performance! 📋'),
    'advice': ("I've got some great tips for you! 💡", 'Let me share some wisdom! 🧠', "Here's what I recommend! ⭐",
               'I have some insights to share! 🔍', 'Let me give you some expert advice! 🎓', "I've got some proven strategies! 🎯",
               'Here are some game-changing tips! 🚀', 'Let me share some secrets! 🤫', 'I have some valuable insights! 💎',
               "Here's some expert guidance! 🧭"),
    'motivation': ("You've got this! I believe in you! 💪", "Keep pushing forward! You're doing great! 🌟", 'Every step counts! Keep going! 🚀',
                   "You're stronger than you think! 💯", "You're crushing it! Keep it up! 🔥", 'Your dedication is inspiring! 🌟',
                   "You're on fire! Don't stop! 🔥", "You're making amazing progress! 🎉", "You're unstoppable! Keep going! ⚡",
                   "You're doing incredible! Stay strong! 💪"),
}

GOAL_FOCUS_LABELS = {'muscle_gain': 'muscle building', 'fat_loss': 'fat loss', 'endurance': 'endurance training'}
EMOTION_LINES = {
    'tired': "I understand you're feeling tired. Let's focus on recovery and lighter activities today.",
    'excited': "I love your energy! Let's channel that excitement into an amazing workout!",
    'frustrated': "I hear your frustration. Let's work through this together and find a solution.",
}
SENTIMENT_LINES = {
    'positive': "I love your positive attitude! That's exactly what drives results.",
    'negative': "I understand this can be challenging, but you've got this! Let's work through it together.",
}

# Checked in order against the (possibly compound) intent
ACTIONS = (
    ('workout', 'workout_help'),
    ('nutrition', 'nutrition_help'),
    ('progress', 'progress_analysis'),
    ('advice', 'general_advice'),
    ('motivation', 'motivation_support'),
    ('planning', 'planning_help'),
)


def determine_action(intent: str) -> str:
    for keyword, action in ACTIONS:
        if keyword in intent:
            return action
    return 'general_help'


def format_number(value: float) -> str:
    """Render whole numbers without a decimal part."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f'{value:g}'


@dataclass
class Draft:
    """Generator output before personalization."""
    content: str
    suggestions: Sequence[str]
    action: str


def entity_suggestions(analysis: Analysis) -> List[str]:
    """Follow-up chips derived from food, exercise and number entities, in entity order."""
    suggestions: List[str] = []
    for entity in analysis.entities:
        if isinstance(entity, FoodEntity):
            foods = ', '.join(entity.values)
            suggestions.extend([f'Track {foods} in nutrition log', f'Calculate macros for {foods}'])
        elif isinstance(entity, ExerciseEntity):
            exercises = ', '.join(entity.values)
            suggestions.extend([f'Add {exercises} to workout', f'Get tips for {exercises}'])
        elif isinstance(entity, NumberEntity):
            suggestions.append(f"Set target of {', '.join(format_number(value) for value in entity.values)}")
    return suggestions


def entity_data(analysis: Analysis) -> Optional[Dict[str, Any]]:
    data: Dict[str, Any] = {}
    food = analysis.entity('food')
    if food is not None:
        data['foods'] = list(food.values)
    exercise = analysis.entity('exercise')
    if exercise is not None:
        data['exercises'] = list(exercise.values)
        if exercise.muscle_groups:
            data['muscle_groups'] = list(exercise.muscle_groups)
    number = analysis.entity('number')
    if number is not None:
        data['numbers'] = list(number.values)
    return data or None


def is_personalized(analysis: Analysis, context: SessionContext) -> bool:
    return analysis.patterns.fired() or context.user_profile is not None


class ResponseSynthesizer(ABC):
    """Turns an Analysis plus SessionContext into a CoachResponse."""

    suggestion_limit = SUGGESTION_LIMIT

    @abstractmethod
    def respond(self, analysis: Analysis, context: Optional[SessionContext]) -> CoachResponse:
        pass

    def _finish(self, analysis: Analysis, context: SessionContext, content: str, suggestions: Sequence[str],
                action: str) -> CoachResponse:
        if analysis.urgency >= URGENCY_THRESHOLD:
            content = f'{URGENCY_MARKER} {content}'
        return CoachResponse(content=content,
                             suggestions=(entity_suggestions(analysis) + list(suggestions))[:self.suggestion_limit],
                             confidence=analysis.confidence,
                             personalized=is_personalized(analysis, context),
                             action=action,
                             data=entity_data(analysis))


class TemplateResponseSynthesizer(ResponseSynthesizer):
    """Rule-based synthesizer over fixed template pools."""

    def __init__(self, selector: Optional[TemplateSelector] = None, clock: Callable[[], datetime] = datetime.now):
        """
        Initialize the template synthesizer.

        Args:
            selector: TemplateSelector used for every variant choice, seeded from config if None
            clock: Callable returning the current time
        """
        self.selector = selector or RandomSelector(config.engine.template_seed)
        self.clock = clock
        self.suggestion_limit = config.engine.suggestion_limit

    def respond(self, analysis: Analysis, context: Optional[SessionContext]) -> CoachResponse:
        context = context or SessionContext(session_id='')
        draft = self.draft(analysis.intent, context)
        content = self.apply_style(draft.content, analysis.intent.split('_')[0], context)
        content = self.personalize(content, analysis, context)
        logger.debug(f'Template response for intent {analysis.intent}: action={draft.action}')
        return self._finish(analysis, context, content, draft.suggestions, draft.action)

    def draft(self, intent: str, context: SessionContext) -> Draft:
        """Pick the category generator for an intent.

        Compound intents that mention both workout and nutrition get the combined plan;
        any other compound falls back to its first label.
        """
        labels = intent.split('_')
        if len(labels) > 1:
            if 'workout' in labels and 'nutrition' in labels:
                return Draft(WORKOUT_NUTRITION_CONTENT, WORKOUT_NUTRITION_CHIPS, 'workout_nutrition_plan')
            intent = labels[0]

        generator = {
            'workout': self._workout,
            'nutrition': self._nutrition,
            'progress': self._progress,
            'advice': self._advice,
            'motivation': self._motivation,
            'planning': self._planning,
        }.get(intent, self._general)
        return generator(context)

    def apply_style(self, content: str, intent: str, context: SessionContext) -> str:
        style = context.user_preferences.communication_style
        openers = OPENERS.get(intent)
        if style == DEFAULT_STYLE or not openers:
            return content

        opener = self.selector.choose(openers)
        if style == 'technical':
            return f'{content}\n\n{opener}'
        if style == 'motivational':
            return f"{opener} {content} You're doing amazing!"
        return f'{opener} {content}'

    @staticmethod
    def personalize(content: str, analysis: Analysis, context: SessionContext) -> str:
        """Append pattern, emotion and sentiment fragments in a fixed order."""
        patterns = analysis.patterns
        fragments = []
        if patterns.time_preference:
            fragments.append(f"I notice you prefer {patterns.time_preference} workouts. I'll keep that in mind for future recommendations!")
        if patterns.intensity_preference:
            intensity = 'challenging' if patterns.intensity_preference == 'high' else 'moderate'
            fragments.append(f"Based on your preference for {intensity} workouts, I'll adjust the intensity accordingly.")
        if patterns.goal_focus and context.user_profile is not None:
            goal = GOAL_FOCUS_LABELS.get(patterns.goal_focus, patterns.goal_focus)
            fragments.append(f"I see you're focused on {goal}. This aligns perfectly with your {context.user_profile.target_physique} goals!")
        if analysis.emotional_state in EMOTION_LINES:
            fragments.append(EMOTION_LINES[analysis.emotional_state])
        if analysis.sentiment in SENTIMENT_LINES:
            fragments.append(SENTIMENT_LINES[analysis.sentiment])

        return '\n\n'.join([content] + fragments)

    def _profile_setup(self, intent: str, pool: Sequence[str]) -> Draft:
        return Draft(self.selector.choose(pool), PROFILE_SETUP_CHIPS[intent], 'profile_setup')

    def _workout(self, context: SessionContext) -> Draft:
        profile = context.user_profile
        if profile is None:
            return self._profile_setup('workout', WORKOUT_NO_PROFILE)

        if not context.workout_history:
            pool = WORKOUT_FIRST_SESSION
            days = None
        else:
            last_workout = context.last_workout_date or max(workout.date for workout in context.workout_history)
            days = days_between(last_workout, self.clock())
            if days == 0:
                pool = WORKOUT_SAME_DAY
            elif days == 1:
                pool = WORKOUT_NEXT_DAY
            elif days <= 3:
                pool = WORKOUT_SHORT_BREAK
            else:
                pool = WORKOUT_LONG_BREAK

        logger.debug(f'Workout template bucket: days_since_last_workout={days}')
        content = self.selector.choose(pool).format(physique=profile.target_physique, days=days)
        return Draft(content, WORKOUT_CHIPS, 'workout_help')

    def _nutrition(self, context: SessionContext) -> Draft:
        profile = context.user_profile
        if profile is None:
            return self._profile_setup('nutrition', NUTRITION_NO_PROFILE)

        today = self.clock().date()
        todays_entries = [entry for entry in context.nutrition_log if entry.date.date() == today]
        if not todays_entries:
            content = self.selector.choose(NUTRITION_NOTHING_LOGGED).format(physique=profile.target_physique)
        else:
            content = self.selector.choose(NUTRITION_LOGGED_TODAY).format(
                physique=profile.target_physique,
                calories=format_number(sum(entry.calories for entry in todays_entries)),
                protein=sum(entry.protein for entry in todays_entries),
                carbs=sum(entry.carbs for entry in todays_entries),
                fat=sum(entry.fat for entry in todays_entries))
        return Draft(content, NUTRITION_CHIPS, 'nutrition_help')

    def _progress(self, context: SessionContext) -> Draft:
        workouts = sorted(context.workout_history, key=lambda workout: workout.date)[-PROGRESS_WINDOW:]
        meals = sorted(context.nutrition_log, key=lambda entry: entry.date)[-PROGRESS_WINDOW:]
        average_calories = sum(entry.calories for entry in meals) / len(meals) if meals else 0

        if len(workouts) >= 5:
            consistency = 'Excellent'
        elif len(workouts) >= 3:
            consistency = 'Good'
        else:
            consistency = 'Needs improvement'

        content = PROGRESS_SUMMARY.format(workouts=len(workouts), calories=round(average_calories), consistency=consistency)
        if context.user_profile is not None:
            content += f'Your {context.user_profile.target_physique} goals are progressing well! '
        content += 'What would you like to focus on next?'
        return Draft(content, PROGRESS_CHIPS, 'progress_analysis')

    def _advice(self, context: SessionContext) -> Draft:
        tips = '\n'.join(ADVICE_TIPS)
        if context.user_profile is not None:
            content = f'For your {context.user_profile.target_physique} goals, here are my top recommendations:\n\n{tips}'
        else:
            content = f'Here are some proven fitness principles:\n\n{tips}'
        return Draft(content, ADVICE_CHIPS, 'general_advice')

    def _motivation(self, context: SessionContext) -> Draft:
        return Draft(self.selector.choose(MOTIVATION_MESSAGES), MOTIVATION_CHIPS, 'motivation_support')

    def _planning(self, context: SessionContext) -> Draft:
        return Draft(PLANNING_CONTENT, PLANNING_CHIPS, 'planning_help')

    def _general(self, context: SessionContext) -> Draft:
        return Draft(GENERAL_CONTENT, GENERAL_CHIPS, 'general_help')


class BedrockResponseSynthesizer(ResponseSynthesizer):
    """Synthesizer that asks a Bedrock-hosted LLM to write the reply."""

    def __init__(self, llm: Optional[BedrockLLM] = None, clock: Callable[[], datetime] = datetime.now):
        """
        Initialize the Bedrock synthesizer.

        Args:
            llm: BedrockLLM client, created from config if None
            clock: Callable returning the current time
        """
        self.llm = llm or BedrockLLM(config.bedrock_llm)
        self.clock = clock
        self.suggestion_limit = config.engine.suggestion_limit

        logger.info('Initialized BedrockResponseSynthesizer')

    def respond(self, analysis: Analysis, context: Optional[SessionContext]) -> CoachResponse:
        """Generate a reply with the LLM.

        Args:
            analysis: Classifier output for the latest message
            context: Session context, the latest message is the last entry of its rolling window

        Returns:
            CoachResponse built from the LLM's JSON answer

        Raises:
            ResponseSynthesisError: If the LLM call fails or its answer cannot be parsed
        """
        context = context or SessionContext(session_id='')
        message = context.recent_messages[-1] if context.recent_messages else ''
        messages = [{'role': 'user', 'content': [{'text': message or '(empty message)'}]}]

        try:
            response, _ = self.llm.generate_response(messages=messages, system_prompt=self._system_prompt(analysis, context))
        except BedrockLLMError as e:
            logger.error(f'LLM error in response synthesis: {e}')
            raise ResponseSynthesisError(f'Response synthesis failed: {e}')

        try:
            payload = json.loads(clean_json_response(response))
        except json.JSONDecodeError:
            logger.warning(f'Failed to parse LLM response: {response}')
            raise ResponseSynthesisError('Response synthesis failed: LLM returned invalid JSON')

        content = payload.get('content') if isinstance(payload, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise ResponseSynthesisError('Response synthesis failed: LLM response has no content')
        suggestions = payload.get('suggestions')
        if not isinstance(suggestions, list):
            suggestions = []
        suggestions = [item.strip() for item in suggestions if isinstance(item, str) and item.strip()]

        return self._finish(analysis, context, content.strip(), suggestions, determine_action(analysis.intent))

    def _system_prompt(self, analysis: Analysis, context: SessionContext) -> str:
        preferences = context.user_preferences
        profile_line = self._profile_summary(context.user_profile)
        if context.last_workout_date is not None:
            workout_line = f'{days_between(context.last_workout_date, self.clock())} days since the last logged workout'
        else:
            workout_line = 'no workouts logged yet'

        return f"""
You are an encouraging personal fitness coach inside a fitness tracking app.

User profile: {profile_line}
Training: {workout_line}, {len(context.workout_history)} workouts logged
Nutrition: {len(context.nutrition_log)} entries logged
Preferences: intensity={preferences.preferred_intensity}, communication style={preferences.communication_style}, \
preferred times={', '.join(preferences.preferred_workout_times) or 'none'}
Recent messages: {json.dumps(list(context.recent_messages)[:-1])}

Message analysis:
- intent: {analysis.intent}
- sentiment: {analysis.sentiment}
- emotional state: {analysis.emotional_state}
- detected signals: {json.dumps(analysis.patterns.as_dict())}

If the user has no profile, ask them to complete it before giving personalized plans.
Keep the reply under 120 words and match the requested communication style.

Return a JSON object with this format:
{{
  "content": "reply text",
  "suggestions": ["short follow-up action", "..."]
}}

Respond ONLY with valid JSON. No additional text.
"""

    @staticmethod
    def _profile_summary(profile: Optional[UserProfile]) -> str:
        if profile is None:
            return 'not completed'
        return (f'{profile.name}, {profile.age} years, {format_number(profile.weight)} lbs, {format_number(profile.height)} cm, '
                f'{profile.body_fat_percentage}% body fat, target physique {profile.target_physique}, {profile.activity_level}')


def create_synthesizer(backend: Optional[str] = None, selector: Optional[TemplateSelector] = None,
                       clock: Callable[[], datetime] = datetime.now) -> ResponseSynthesizer:
    """Build the synthesizer named by `backend` (default from config): 'template' or 'bedrock'.

    Raises:
        ResponseSynthesisError: If the backend name is unknown
    """
    backend = (backend or config.engine.synthesizer_backend).lower()
    if backend == 'template':
        return TemplateResponseSynthesizer(selector, clock=clock)
    if backend == 'bedrock':
        return BedrockResponseSynthesizer(clock=clock)
    raise ResponseSynthesisError(f'Unknown synthesizer backend: {backend}')
