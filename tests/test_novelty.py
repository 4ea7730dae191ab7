from unittest.mock import Mock

from planewatch.ingestion.novelty import NoveltyDetector

from conftest import make_aircraft


def test_seen_set_equals_filtered_set_after_each_cycle():
    detector = NoveltyDetector()
    cycles = [
        [make_aircraft('a'), make_aircraft('b')],
        [make_aircraft('b'), make_aircraft('c', r='')],
        [],
    ]

    for filtered in cycles:
        detector.observe(filtered)
        assert detector.seen == {ac.identifier for ac in filtered}


def test_arrivals_are_new_with_registration():
    detector = NoveltyDetector()

    first = detector.observe([make_aircraft('a'), make_aircraft('b')])
    second = detector.observe([make_aircraft('b'), make_aircraft('c')])

    assert [ac.identifier for ac in first] == ['a', 'b']
    assert [ac.identifier for ac in second] == ['c']


def test_missing_registration_is_never_an_arrival():
    detector = NoveltyDetector()

    assert detector.observe([make_aircraft('a', r='')]) == []
    assert detector.observe([make_aircraft('a', r='')]) == []
    assert 'a' in detector.seen


def test_reappearance_counts_as_new():
    detector = NoveltyDetector()
    detector.observe([make_aircraft('a')])
    detector.observe([])

    assert [ac.identifier for ac in detector.observe([make_aircraft('a')])] == ['a']


def test_arrival_callback_gets_spotlight_only():
    detector = NoveltyDetector()
    callback = Mock()
    failing = Mock(side_effect=RuntimeError('speaker unplugged'))
    detector.add_arrival_callback(failing)
    detector.add_arrival_callback(callback)

    arrivals = detector.observe([make_aircraft('a'), make_aircraft('b')])

    callback.assert_called_once_with(arrivals[0])
    assert NoveltyDetector.spotlight(arrivals) is arrivals[0]
    assert NoveltyDetector.spotlight([]) is None
    assert detector.stats == {'seen': 2, 'arrivals': 2}
