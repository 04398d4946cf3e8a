from datetime import timedelta

import pytest

from fitcoach.models.memory import LongTermMemory, MemoryKind, ShortTermMemory
from fitcoach.services.memory_management import MemoryManagementError, jaccard


def test_retrieve_on_unknown_session_is_empty(memory):
    assert memory.retrieve('nobody', 'squat') == []
    assert memory.stats('nobody') is None


def test_store_auto_creates_bank_and_returns_prefixed_ids(memory):
    ids = [
        memory.store_short_term('s1', 'leg day went well'),
        memory.store_long_term('s1', 'prefers mornings'),
        memory.store_episodic('s1', 'first pull-up', emotions=['proud']),
        memory.store_semantic('s1', 'squat', 'compound lower body lift'),
        memory.store_procedural('s1', 'warm up', steps=['bike', 'mobility']),
    ]

    assert [memory_id.split('_')[0] for memory_id in ids] == ['st', 'lt', 'ep', 'sm', 'pr']
    assert len(set(ids)) == 5
    assert memory.stats('s1') == {'short_term': 1, 'long_term': 1, 'episodic': 1, 'semantic': 1, 'procedural': 1, 'total': 5}


def test_generic_store_maps_importance_to_tier_weight(memory):
    memory.store('s1', 'semantic', 'deadlift', 0.9, {'equipment': 'barbell'}, definition='hip hinge')
    memory.store('s1', MemoryKind.PROCEDURAL, 'meal prep', 1.7, steps=['cook', 'portion'])

    semantic = memory.retrieve('s1', 'deadlift', kind='semantic')[0]
    procedural = memory.retrieve('s1', 'meal prep', kind=MemoryKind.PROCEDURAL)[0]
    assert semantic.confidence == 0.9
    assert semantic.properties == {'equipment': 'barbell'}
    assert procedural.success_rate == 1.0


def test_store_with_unknown_tier_stores_nothing(memory):
    assert memory.store('s1', 'dream', 'flying') == ''
    assert memory.store('s1', 'episodic', 'fell over', mood='bad') == ''
    assert memory.stats('s1') is None


def test_retrieve_rejects_unknown_tier_filter(memory):
    memory.store_short_term('s1', 'hello')

    with pytest.raises(MemoryManagementError):
        memory.retrieve('s1', 'hello', kind='dream')


def test_retrieve_ranks_by_text_overlap(memory):
    memory.store_short_term('s1', 'my knees hurt after squats')
    memory.store_short_term('s1', 'I had oats for breakfast')

    results = memory.retrieve('s1', 'oats breakfast')

    assert isinstance(results[0], ShortTermMemory)
    assert results[0].content == 'I had oats for breakfast'


def test_retrieve_filters_by_kind_and_limit(memory):
    for index in range(5):
        memory.store_short_term('s1', f'note {index}')
    memory.store_long_term('s1', 'note long')

    assert len(memory.retrieve('s1', 'note', limit=3)) == 3
    assert all(isinstance(record, LongTermMemory) for record in memory.retrieve('s1', 'note', kind='long_term'))


def test_associations_and_emotions_do_not_dilute_text_overlap(memory):
    memory.store_long_term('s1', 'hates running', associations=['st_abc123'])
    memory.store_episodic('s1', 'missed leg day', emotions=['frustrated'])

    long_term = memory.retrieve('s1', 'hates running', kind='long_term')[0]
    episodic = memory.retrieve('s1', 'missed leg day', kind='episodic')[0]
    assert jaccard(long_term.text, 'hates running') == 1.0
    assert jaccard(episodic.text, 'missed leg day') == 1.0


def test_consolidated_memory_ranks_like_a_fresh_one(memory, clock):
    memory.store_short_term('s1', 'hates running', importance=0.9)
    clock.advance(hours=25)
    memory.consolidate('s1')
    memory.store_long_term('s1', 'hates running', importance=0.9)

    promoted, fresh = sorted(memory.retrieve('s1', 'hates running', kind='long_term'), key=lambda record: bool(record.associations),
                             reverse=True)
    assert memory.relevance(promoted, 'hates running') == memory.relevance(fresh, 'hates running')


def test_recency_decay_is_monotonic(memory, clock):
    memory.store_short_term('s1', 'bench press day')
    record = memory.retrieve('s1', 'bench')[0]

    scores = [memory.relevance(record, 'bench', now=clock.now + timedelta(hours=hours)) for hours in (0, 1, 12, 48, 200)]

    assert scores == sorted(scores, reverse=True)
    assert scores[0] > scores[-1]


def test_cleanup_keeps_important_short_term_memories(memory, clock):
    memory.store_short_term('s1', 'torn ligament last year', importance=0.9)
    memory.store_short_term('s1', 'had a sandwich', importance=0.3)
    memory.store_episodic('s1', 'missed a workout', significance=0.4)
    memory.store_long_term('s1', 'prefers mornings', importance=0.2)

    removed = memory.cleanup('s1', now=clock.now + timedelta(days=8))

    assert removed == 2
    assert memory.stats('s1')['short_term'] == 1
    assert memory.stats('s1')['long_term'] == 1
    assert memory.retrieve('s1', 'ligament', kind='short_term')[0].importance == 0.9
    assert memory.cleanup('s1', now=clock.now + timedelta(days=8)) == 0


def test_cleanup_leaves_recent_memories(memory, clock):
    memory.store_short_term('s1', 'recent note', importance=0.1)

    assert memory.cleanup(now=clock.now + timedelta(days=6)) == 0


def test_consolidate_promotes_old_important_short_term(memory, clock):
    source_id = memory.store_short_term('s1', 'hates running', importance=0.9, context={'intent': 'workout'})
    memory.store_short_term('s1', 'likes rowing', importance=0.5)

    assert memory.consolidate('s1', now=clock.now + timedelta(hours=12)) == 0
    assert memory.consolidate('s1', now=clock.now + timedelta(hours=25)) == 1

    promoted = memory.retrieve('s1', 'running', kind='long_term')[0]
    assert promoted.content == 'hates running'
    assert promoted.associations == [source_id]
    assert memory.stats('s1')['short_term'] == 1


def test_store_updates_learning_model(memory):
    memory.store_short_term('s1', 'squats squats and lunges')

    model = memory.learning_models.get_model('s1')
    assert model.data['patterns'] == {'squats': 2, 'lunges': 1}


def test_remove_drops_bank_and_model(memory):
    memory.store_short_term('s1', 'hello')

    memory.remove('s1')

    assert not memory.has_session('s1')
    assert memory.learning_models.get_model('s1') is None


def test_jaccard():
    assert jaccard('heavy squat day', 'squat day') == pytest.approx(2 / 3)
    assert jaccard('', '') == 0.0
    assert jaccard('Squat!', 'squat') == 1.0
