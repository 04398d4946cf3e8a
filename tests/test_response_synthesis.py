import pytest

from fitcoach.models.core import Analysis, ExerciseEntity, FoodEntity, NumberEntity, PatternMap, SessionContext, TimeEntity
from fitcoach.services.response_synthesis import (ADVICE_TIPS, GENERAL_CHIPS, GENERAL_CONTENT, MOTIVATION_MESSAGES, NUTRITION_CHIPS,
                                                  OPENERS, PROFILE_SETUP_CHIPS, WORKOUT_CHIPS, WORKOUT_NO_PROFILE, IndexSelector,
                                                  RandomSelector, ResponseSynthesisError, TemplateResponseSynthesizer,
                                                  create_synthesizer, determine_action, entity_data, fallback_response)


def make_analysis(intent='general', sentiment='neutral', entities=None, patterns=None, confidence=0.7, urgency=0.0,
                  emotional_state='neutral'):
    return Analysis(intent=intent,
                    sentiment=sentiment,
                    entities=entities or [],
                    patterns=patterns or PatternMap(),
                    confidence=confidence,
                    urgency=urgency,
                    complexity=0.0,
                    emotional_state=emotional_state)


def test_workout_without_profile_asks_for_setup(synthesizer):
    response = synthesizer.respond(make_analysis('workout'), SessionContext(session_id='s1'))

    assert response.action == 'profile_setup'
    assert response.content == WORKOUT_NO_PROFILE[0]
    assert response.suggestions == list(PROFILE_SETUP_CHIPS['workout'])
    assert response.personalized is False


def test_first_workout_welcome(synthesizer, context):
    response = synthesizer.respond(make_analysis('workout'), context)

    assert response.content.startswith('Welcome to your fitness journey! As a athletic')
    assert response.action == 'workout_help'
    assert response.suggestions == list(WORKOUT_CHIPS)
    assert response.personalized is True


@pytest.mark.parametrize('days_ago, opening', [
    (0.2, 'Amazing work today! Your athletic goals'),
    (1.5, 'Perfect timing!'),
    (2.5, 'No worries about the 2 day break!'),
    (3.0, 'No worries about the 3 day break!'),
    (10, "Let's restart your momentum!"),
])
def test_workout_bucket_by_days_since_last_session(synthesizer, context, make_workout, days_ago, opening):
    context.workout_history = [make_workout(30), make_workout(days_ago)]

    response = synthesizer.respond(make_analysis('workout'), context)

    assert response.content.startswith(opening)


def test_nutrition_totals_only_count_today(synthesizer, context, make_meal):
    context.nutrition_log = [
        make_meal('chicken', 300, 30, 0, 10),
        make_meal('rice', 200, 4, 45, 1),
        make_meal('pizza', 900, 30, 100, 40, days_ago=1),
    ]

    response = synthesizer.respond(make_analysis('nutrition'), context)

    assert response.content.startswith(
        "Excellent nutrition tracking! You've logged 500 calories (34.0g protein, 45.0g carbs, 11.0g fat).")
    assert response.action == 'nutrition_help'
    assert response.suggestions == list(NUTRITION_CHIPS)


def test_nutrition_with_nothing_logged_today(synthesizer, context, make_meal):
    context.nutrition_log = [make_meal('oats', 350, 12, 60, 6, days_ago=2)]

    response = synthesizer.respond(make_analysis('nutrition'), context)

    assert response.content.startswith("Let's fuel your athletic goals!")


def test_nutrition_without_profile(synthesizer):
    response = synthesizer.respond(make_analysis('nutrition'), SessionContext(session_id='s1'))

    assert response.action == 'profile_setup'
    assert response.suggestions == list(PROFILE_SETUP_CHIPS['nutrition'])


@pytest.mark.parametrize('count, consistency', [(5, 'Excellent'), (3, 'Good'), (1, 'Needs improvement')])
def test_progress_summary(synthesizer, context, make_workout, make_meal, count, consistency):
    context.workout_history = [make_workout(index) for index in range(count)]
    context.nutrition_log = [make_meal('oats', 2000, 0, 0, 0), make_meal('rice', 2501, 0, 0, 0)]

    response = synthesizer.respond(make_analysis('progress'), context)

    assert f'• Workouts completed: {count}' in response.content
    assert '• Average daily calories: 2250' in response.content
    assert f'• Consistency: {consistency}' in response.content
    assert 'Your athletic goals are progressing well!' in response.content
    assert response.action == 'progress_analysis'


def test_progress_only_looks_at_last_seven_workouts(synthesizer, context, make_workout):
    context.workout_history = [make_workout(index) for index in range(12)]

    response = synthesizer.respond(make_analysis('progress'), context)

    assert '• Workouts completed: 7' in response.content


def test_advice_lists_all_tips(synthesizer, context):
    response = synthesizer.respond(make_analysis('advice'), context)

    assert response.content.startswith('For your athletic goals, here are my top recommendations:')
    assert all(tip in response.content for tip in ADVICE_TIPS)
    assert response.action == 'general_advice'


def test_motivation_planning_and_general(synthesizer, context):
    assert synthesizer.respond(make_analysis('motivation'), context).content == MOTIVATION_MESSAGES[0]
    assert synthesizer.respond(make_analysis('planning'), context).action == 'planning_help'

    general = synthesizer.respond(make_analysis('general'), SessionContext(session_id='s1'))
    assert general.content == GENERAL_CONTENT
    assert general.suggestions == list(GENERAL_CHIPS)
    assert general.action == 'general_help'


def test_compound_intents(synthesizer, context):
    combined = synthesizer.respond(make_analysis('workout_nutrition_planning'), context)
    assert combined.action == 'workout_nutrition_plan'
    assert combined.suggestions[0] == 'Create workout + meal plan'

    # other compounds use their first label
    assert synthesizer.respond(make_analysis('progress_advice'), context).action == 'progress_analysis'


def test_personalization_fragments_follow_fixed_order(synthesizer, context):
    analysis = make_analysis('motivation',
                             sentiment='negative',
                             patterns=PatternMap(time_preference='morning', intensity_preference='low', goal_focus='fat_loss'),
                             emotional_state='tired')

    parts = synthesizer.respond(analysis, context).content.split('\n\n')

    assert parts[0] == MOTIVATION_MESSAGES[0]
    assert parts[1].startswith('I notice you prefer morning workouts.')
    assert parts[2] == "Based on your preference for moderate workouts, I'll adjust the intensity accordingly."
    assert parts[3] == "I see you're focused on fat loss. This aligns perfectly with your athletic goals!"
    assert parts[4].startswith("I understand you're feeling tired.")
    assert parts[5].startswith("I understand this can be challenging")


def test_goal_focus_fragment_needs_profile(synthesizer):
    analysis = make_analysis('motivation', patterns=PatternMap(goal_focus='endurance'))

    response = synthesizer.respond(analysis, SessionContext(session_id='s1'))

    assert 'focused on' not in response.content
    assert response.personalized is True


@pytest.mark.parametrize('style, expected', [
    ('casual', "{opener} {content}"),
    ('technical', '{content}\n\n{opener}'),
    ('motivational', "{opener} {content} You're doing amazing!"),
    ('encouraging', '{content}'),
])
def test_communication_style_openers(synthesizer, context, style, expected):
    context.user_preferences.communication_style = style

    response = synthesizer.respond(make_analysis('motivation'), context)

    assert response.content == expected.format(opener=OPENERS['motivation'][0], content=MOTIVATION_MESSAGES[0])


def test_style_has_no_opener_for_general(synthesizer, context):
    context.user_preferences.communication_style = 'casual'

    assert synthesizer.respond(make_analysis('general'), context).content == GENERAL_CONTENT


def test_urgency_marker(synthesizer, context):
    assert synthesizer.respond(make_analysis('motivation', urgency=0.5), context).content.startswith('🚨 ')
    assert not synthesizer.respond(make_analysis('motivation', urgency=0.4), context).content.startswith('🚨')


def test_entity_suggestions_come_first_and_are_capped(synthesizer, context):
    entities = [
        NumberEntity(values=[225.0, 5.0], context='weight'),
        FoodEntity(values=['chicken', 'rice'], nutritional_value={'protein': 1, 'carbs': 1}),
        ExerciseEntity(values=['squat'], muscle_groups=['quadriceps', 'glutes']),
        TimeEntity(values=['morning']),
    ]

    response = synthesizer.respond(make_analysis('workout', entities=entities), context)

    assert response.suggestions == [
        'Set target of 225, 5',
        'Track chicken, rice in nutrition log',
        'Calculate macros for chicken, rice',
        'Add squat to workout',
        'Get tips for squat',
        WORKOUT_CHIPS[0],
    ]
    assert response.data == {
        'foods': ['chicken', 'rice'],
        'exercises': ['squat'],
        'muscle_groups': ['quadriceps', 'glutes'],
        'numbers': [225.0, 5.0],
    }


def test_entity_data_is_none_without_payload_entities():
    assert entity_data(make_analysis(entities=[TimeEntity(values=['today'])])) is None


def test_confidence_is_passed_through(synthesizer, context):
    assert synthesizer.respond(make_analysis('advice', confidence=0.85), context).confidence == 0.85


def test_fallback_response():
    response = fallback_response()

    assert response.to_dict() == {
        'content': 'I apologize, but I encountered an error processing your request. Please try again.',
        'suggestions': ['Try again', 'Ask something else', 'Get help'],
        'confidence': 0.3,
        'personalized': False,
        'action': 'error_recovery',
    }


@pytest.mark.parametrize('intent, action', [
    ('workout', 'workout_help'),
    ('nutrition_advice', 'nutrition_help'),
    ('advice_motivation', 'general_advice'),
    ('planning', 'planning_help'),
    ('general', 'general_help'),
])
def test_determine_action(intent, action):
    assert determine_action(intent) == action


def test_seeded_random_selector_is_reproducible(context):
    first = TemplateResponseSynthesizer(RandomSelector(42))
    second = TemplateResponseSynthesizer(RandomSelector(42))

    picks = [first.respond(make_analysis('motivation'), context).content for _ in range(5)]

    assert picks == [second.respond(make_analysis('motivation'), context).content for _ in range(5)]
    assert all(pick in MOTIVATION_MESSAGES for pick in picks)


def test_index_selector_wraps():
    assert IndexSelector(5).choose(['a', 'b', 'c']) == 'c'


def test_create_synthesizer():
    assert isinstance(create_synthesizer('template', IndexSelector()), TemplateResponseSynthesizer)
    with pytest.raises(ResponseSynthesisError):
        create_synthesizer('crystal-ball')
