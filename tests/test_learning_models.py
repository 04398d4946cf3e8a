import pytest

from fitcoach.models.memory import LearningModelKind, MemoryKind, ShortTermMemory
from fitcoach.services.learning_models import LearningModelError


def test_predict_on_unknown_session_creates_nothing(learning_models):
    first = learning_models.predict('ghost', {'message': 'squat'})
    second = learning_models.predict('ghost', 'anything')

    for prediction in (first, second):
        assert prediction.output is None
        assert prediction.confidence == 0.0
    assert learning_models.get_model('ghost') is None


def test_model_is_created_with_defaults_on_first_update(learning_models):
    learning_models.update_learning_models('s1', MemoryKind.SHORT_TERM, ShortTermMemory.create('deadlift form check'))

    model = learning_models.get_model('s1')
    assert model.kind is LearningModelKind.PATTERN
    assert model.accuracy == 0.5
    assert model.data['patterns'] == {'deadlift': 1, 'form': 1, 'check': 1}


def test_pattern_prediction_picks_most_frequent_contained_key(memory):
    memory.store_short_term('s1', 'squat squat squat')
    memory.store_short_term('s1', 'bench bench')
    memory.store_short_term('s1', 'cardio')

    prediction = memory.learning_models.predict('s1', {'message': 'Bench or SQUAT today?'})

    assert prediction.output == 'squat'
    assert prediction.confidence == 0.8


def test_prediction_without_match_keeps_kind_confidence(memory):
    memory.store_short_term('s1', 'squat')

    prediction = memory.learning_models.predict('s1', 'yoga')

    assert prediction.output is None
    assert prediction.confidence == 0.8


@pytest.mark.parametrize('kind, expected_output, expected_confidence', [
    (LearningModelKind.PREFERENCE, 'morning sessions', 0.7),
    (LearningModelKind.BEHAVIOR, 'tired', 0.6),
    (LearningModelKind.GOAL, 'meal prep', 0.9),
])
def test_prediction_dispatches_on_model_kind(memory, kind, expected_output, expected_confidence):
    memory.store_long_term('s1', 'morning sessions', importance=0.6)
    memory.store_long_term('s1', 'evening sessions', importance=0.4)
    memory.store_episodic('s1', 'skipped gym', emotions=['tired'])
    memory.store_procedural('s1', 'meal prep', steps=['cook', 'portion'], success_rate=0.8)
    memory.learning_models.set_model_kind('s1', kind)

    prediction = memory.learning_models.predict('s1', 'morning sessions when tired after meal prep')

    assert prediction.output == expected_output
    assert prediction.confidence == expected_confidence


def test_set_model_kind_rejects_unknown(learning_models):
    with pytest.raises(LearningModelError):
        learning_models.set_model_kind('s1', 'astrology')


def test_episodic_without_emotions_counts_event_words(memory):
    memory.store_episodic('s1', 'finished marathon')

    assert memory.learning_models.get_model('s1').data['behaviors'] == {'finished': 1, 'marathon': 1}


def test_merges_on_key_collision(memory):
    memory.store_long_term('s1', 'likes rowing', importance=0.6)
    memory.store_long_term('s1', 'likes rowing', importance=0.9)
    memory.store_semantic('s1', 'squat', 'lower body lift', properties={'level': 'basic'}, relationships={'muscles': ['glutes']})
    memory.store_semantic('s1', 'squat', 'lower body lift', properties={'equipment': 'barbell'}, relationships={'muscles': ['quads']},
                          confidence=0.95)
    memory.store_procedural('s1', 'warm up', success_rate=0.4, improvement=0.1)
    memory.store_procedural('s1', 'warm up', success_rate=0.8, improvement=0.3)

    data = memory.learning_models.get_model('s1').data
    assert data['preferences'] == [{'content': 'likes rowing', 'importance': 0.9, 'context': {}}]
    assert data['knowledge'][0]['properties'] == {'level': 'basic', 'equipment': 'barbell'}
    assert data['knowledge'][0]['relationships'] == {'muscles': ['glutes', 'quads']}
    assert data['knowledge'][0]['confidence'] == 0.95
    assert data['procedures'][0]['success_rate'] == pytest.approx(0.6)
    assert data['procedures'][0]['improvement'] == 0.3


def test_accuracy_follows_recorded_outcomes_in_window(memory, clock):
    learning_models = memory.learning_models
    memory.store_short_term('s1', 'squat')

    hit = learning_models.predict('s1', 'squat please')
    miss = learning_models.predict('s1', 'squat again')
    learning_models.record_outcome('s1', hit.id, 'squat')
    learning_models.record_outcome('s1', miss.id, 'bench')

    assert learning_models.get_model('s1').accuracy == pytest.approx(0.5)

    learning_models.record_outcome('s1', miss.id, 'squat')
    assert learning_models.get_model('s1').accuracy == 1.0

    # once predictions fall outside the window the accuracy is left as is
    clock.advance(hours=25)
    memory.store_short_term('s1', 'bench')
    assert learning_models.get_model('s1').accuracy == 1.0


def test_record_outcome_for_unknown_prediction(memory):
    memory.store_short_term('s1', 'squat')

    assert memory.learning_models.record_outcome('s1', 'pred_missing', 'x') is None
    assert memory.learning_models.record_outcome('ghost', 'pred_missing', 'x') is None


def test_prediction_history_is_bounded(memory):
    memory.store_short_term('s1', 'squat')
    for _ in range(120):
        memory.learning_models.predict('s1', 'squat')

    assert len(memory.learning_models.get_model('s1').predictions) == 100
