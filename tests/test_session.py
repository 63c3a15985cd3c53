from __future__ import annotations

import pathlib

import pytest
from playwright.sync_api import Error as PlaywrightError

from slipstream.session import SessionTimeouts, TranslationSession, translated_path_for
from slipstream.structures import (
    FailureReason,
    SessionState,
    TranslationFailure,
    TranslationSuccess,
)

from conftest import FakePage, FakeSupervisor

TIMEOUTS = SessionTimeouts(
    navigation=1,
    upload_settle=0,
    trigger=3,
    post_trigger_settle=0,
    completion=5,
    download=1,
    poll_interval=1,
)


@pytest.fixture
def artifact(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "report_chunk_2.pdf"
    path.write_bytes(b"%PDF-1.4 chunk")
    return path


def run_session(supervisor, artifact, *, target="es", **kwargs):
    kwargs.setdefault("timeouts", TIMEOUTS)
    if supervisor.pages:
        kwargs.setdefault("clock", supervisor.pages[0].clock)
    session = TranslationSession(
        supervisor,
        artifact,
        source_language="en",
        target_language=target,
        index=1,
        **kwargs,
    )
    return session, session.run()


def test_successful_session_downloads_next_to_artifact(artifact):
    page = FakePage()
    supervisor = FakeSupervisor(page)

    session, result = run_session(supervisor, artifact)

    assert isinstance(result, TranslationSuccess)
    assert result.index == 1
    assert result.output_path == artifact.with_name("translated_report_chunk_2.pdf")
    assert result.output_path.read_bytes() == b"%PDF-1.4 translated"
    assert session.state is SessionState.DOWNLOADED
    assert page.visited == ["https://translate.google.com/?hl=es&sl=en&tl=es&op=docs"]
    assert page.uploaded == str(artifact)
    assert page.clicked == ["Traducir", "Descargar traducción"]
    assert supervisor.contexts[0].closed


def test_interface_language_follows_target_language(artifact):
    page = FakePage(trigger_label="Translate", download_label="Download translation")

    _, result = run_session(FakeSupervisor(page), artifact, target="en")

    assert result.succeeded
    assert page.queried[0] == ("button", "Translate", True)


def test_other_locale_labels_are_accepted_as_fallback(artifact):
    page = FakePage(trigger_label="Übersetzen", download_label="Übersetzung herunterladen")

    _, result = run_session(FakeSupervisor(page), artifact, target="ja")

    assert result.succeeded
    assert page.clicked == ["Übersetzen", "Übersetzung herunterladen"]


def test_missing_trigger_fails_after_upload(artifact):
    page = FakePage(trigger_label=None)
    supervisor = FakeSupervisor(page)

    session, result = run_session(supervisor, artifact)

    assert isinstance(result, TranslationFailure)
    assert result.state is SessionState.UPLOADED
    assert result.reason is FailureReason.TRIGGER_NOT_FOUND
    assert "Could not find translate button" in result.message
    assert session.state is SessionState.FAILED
    assert supervisor.contexts[0].closed


def test_completion_control_never_appearing_is_a_timeout(artifact):
    page = FakePage(download_label=None)

    _, result = run_session(FakeSupervisor(page), artifact)

    assert result.reason is FailureReason.COMPLETION_TIMEOUT
    assert result.state is SessionState.TRIGGERED
    assert not result.bot_detected
    assert not translated_path_for(artifact).exists()


def test_page_closed_while_waiting_is_bot_detection(artifact):
    page = FakePage(polls_until_done=100, close_after_polls=3)
    supervisor = FakeSupervisor(page)

    _, result = run_session(supervisor, artifact)

    assert result.reason is FailureReason.BOT_DETECTED
    assert result.state is SessionState.TRIGGERED
    assert result.bot_detected
    assert supervisor.contexts[0].closed


def test_page_closed_right_after_trigger_is_bot_detection(artifact):
    page = FakePage(close_on_trigger=True)

    _, result = run_session(FakeSupervisor(page), artifact)

    assert result.reason is FailureReason.BOT_DETECTED
    assert result.state is SessionState.TRIGGERED


def test_empty_download_is_rejected_and_removed(artifact):
    page = FakePage(download_content=b"")

    _, result = run_session(FakeSupervisor(page), artifact)

    assert result.reason is FailureReason.DOWNLOAD_SAVE_FAILED
    assert result.state is SessionState.COMPLETED
    assert not translated_path_for(artifact).exists()


def test_navigation_error_is_retryable(artifact):
    page = FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))

    _, result = run_session(FakeSupervisor(page), artifact)

    assert result.reason is FailureReason.NAVIGATION_FAILED
    assert result.state is SessionState.INIT
    assert result.retryable


def test_missing_artifact_fails_without_opening_a_context(tmp_path):
    supervisor = FakeSupervisor(FakePage())

    _, result = run_session(supervisor, tmp_path / "absent.pdf")

    assert result.reason is FailureReason.UPLOAD_FAILED
    assert supervisor.contexts == []


def test_screenshots_only_in_debug_mode(artifact, tmp_path):
    shots = tmp_path / "shots"
    quiet_page = FakePage(trigger_label=None)
    run_session(FakeSupervisor(quiet_page), artifact, screenshot_dir=shots)
    assert quiet_page.screenshots == []
    assert not shots.exists()

    debug_page = FakePage(trigger_label=None)
    run_session(FakeSupervisor(debug_page), artifact, debug=True, screenshot_dir=shots)
    names = [pathlib.Path(path).name for path in debug_page.screenshots]
    assert any(name.startswith("01-initial-load") for name in names)
    assert any(name.startswith("99-error") for name in names)


def test_session_cannot_be_reused(artifact):
    session, _ = run_session(FakeSupervisor(FakePage()), artifact)

    with pytest.raises(RuntimeError):
        session.run()


def test_control_wait_stops_exactly_at_the_deadline(artifact):
    page = FakePage(trigger_label=None)
    timeouts = SessionTimeouts(
        navigation=1, upload_settle=0, trigger=2.5, post_trigger_settle=0, poll_interval=1
    )

    _, result = run_session(FakeSupervisor(page), artifact, timeouts=timeouts)

    assert result.reason is FailureReason.TRIGGER_NOT_FOUND
    assert page.now == pytest.approx(2.5)


def test_time_spent_checking_visibility_counts_against_the_deadline(artifact):
    page = FakePage(trigger_label=None, visibility_cost=1.0)

    _, result = run_session(FakeSupervisor(page), artifact)

    assert result.reason is FailureReason.TRIGGER_NOT_FOUND
    first_label_checks = [query for query in page.queried if query[1] == "Traducir"]
    assert len(first_label_checks) == 1
