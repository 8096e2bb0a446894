"""Unit tests for the progress reporter."""
import pytest

from dictionary_fill.progress import ProgressReporter, ReporterStateError, StatusEntry


@pytest.fixture
def reporter():
    return ProgressReporter(show_progress=False)


def test_session_records_statuses(reporter):
    with reporter.session(['home', 'about']):
        reporter.update_status([
            StatusEntry(dictionary_key='home', status='translated', locale='fr'),
            StatusEntry(dictionary_key='home', status='failed', locale='es'),
            StatusEntry(dictionary_key='home', status='written'),
            StatusEntry(dictionary_key='about', status='skipped', reason='nothing to translate'),
        ])

    report = reporter.report
    assert report.dictionaries == {'home': 'written', 'about': 'skipped'}
    assert report.locales == {'home': {'fr': 'translated', 'es': 'failed'}}
    assert report.reasons == {'about': 'nothing to translate'}
    assert report.keys_with_status('skipped') == ['about']
    assert not reporter.active


def test_session_is_ended_when_the_body_raises(reporter):
    with pytest.raises(RuntimeError):
        with reporter.session(['home']):
            raise RuntimeError("boom")

    assert not reporter.active
    # A new session can start right away
    with reporter.session(['about']):
        assert reporter.active


def test_begin_twice_is_rejected(reporter):
    reporter.begin(['home'])
    try:
        with pytest.raises(ReporterStateError):
            reporter.begin(['about'])
    finally:
        reporter.end()


def test_update_outside_a_session_is_rejected(reporter):
    with pytest.raises(ReporterStateError):
        reporter.update_status([StatusEntry(dictionary_key='home', status='written')])


def test_end_without_session_is_harmless(reporter):
    report = reporter.end()

    assert report.dictionaries == {}


def test_added_keys_are_pending(reporter):
    with reporter.session(['home']):
        reporter.add_dictionary_keys(['home', 'remote'])

        assert reporter.report.dictionaries == {'home': 'pending', 'remote': 'pending'}
