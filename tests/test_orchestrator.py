from __future__ import annotations

import pathlib

from slipstream.orchestrator import BatchOrchestrator
from slipstream.providers import TranslationProvider
from slipstream.structures import (
    FailureReason,
    SessionState,
    TranslationFailure,
    TranslationSuccess,
)


def success(path: pathlib.Path, index: int) -> TranslationSuccess:
    return TranslationSuccess(index=index, source_path=path, output_path=path.with_suffix(".out"))


def failure(path: pathlib.Path, index: int, reason: FailureReason) -> TranslationFailure:
    return TranslationFailure(
        index=index,
        source_path=path,
        state=SessionState.TRIGGERED,
        reason=reason,
        message=reason.value,
    )


class ScriptedProvider(TranslationProvider):
    """Replays a queue of outcomes per artifact name."""

    name = "scripted"

    def __init__(self, script: dict) -> None:
        self.script = {key: list(value) for key, value in script.items()}
        self.calls: list[str] = []
        self.resets = 0

    def translate(self, artifact_path, *, source_language, target_language, index=0):
        self.calls.append(artifact_path.name)
        outcome = self.script[artifact_path.name].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome == "ok":
            return success(artifact_path, index)
        return failure(artifact_path, index, outcome)

    def reset(self) -> None:
        self.resets += 1


PATHS = [pathlib.Path(f"/tmp/job_chunk_{n}.pdf") for n in (1, 2, 3)]


def test_middle_failure_keeps_position_and_continues() -> None:
    provider = ScriptedProvider({
        "job_chunk_1.pdf": ["ok"],
        "job_chunk_2.pdf": [FailureReason.COMPLETION_TIMEOUT],
        "job_chunk_3.pdf": ["ok"],
    })

    results = BatchOrchestrator(provider).translate_all(PATHS, "en", "es")

    assert [result.succeeded for result in results] == [True, False, True]
    assert [result.index for result in results] == [0, 1, 2]
    assert results[1].reason is FailureReason.COMPLETION_TIMEOUT
    assert provider.calls == ["job_chunk_1.pdf", "job_chunk_2.pdf", "job_chunk_3.pdf"]


def test_provider_exception_becomes_failure_result() -> None:
    provider = ScriptedProvider({
        "job_chunk_1.pdf": [RuntimeError("boom")],
        "job_chunk_2.pdf": ["ok"],
        "job_chunk_3.pdf": ["ok"],
    })

    results = BatchOrchestrator(provider).translate_all(PATHS, "en", "es")

    assert results[0].reason is FailureReason.UNEXPECTED
    assert "boom" in results[0].message
    assert results[0].source_path == PATHS[0]
    assert results[1].succeeded and results[2].succeeded


def test_bot_detection_resets_engine_before_next_artifact() -> None:
    provider = ScriptedProvider({
        "job_chunk_1.pdf": [FailureReason.BOT_DETECTED],
        "job_chunk_2.pdf": ["ok"],
        "job_chunk_3.pdf": ["ok"],
    })

    results = BatchOrchestrator(provider).translate_all(PATHS, "en", "es")

    assert results[0].bot_detected
    assert provider.resets == 1
    assert provider.calls.count("job_chunk_1.pdf") == 1


def test_navigation_failures_are_retried_with_backoff() -> None:
    provider = ScriptedProvider({
        "job_chunk_1.pdf": [FailureReason.NAVIGATION_FAILED, "ok"],
        "job_chunk_2.pdf": [FailureReason.NAVIGATION_FAILED] * 3,
        "job_chunk_3.pdf": ["ok"],
    })
    sleeps: list[float] = []

    results = BatchOrchestrator(
        provider,
        max_retries=2,
        sleep=sleeps.append,
    ).translate_all(PATHS, "en", "es")

    assert [result.succeeded for result in results] == [True, False, True]
    assert provider.calls.count("job_chunk_1.pdf") == 2
    assert provider.calls.count("job_chunk_2.pdf") == 3
    assert sleeps == [1, 1, 4]


def test_non_retryable_failures_are_not_retried() -> None:
    provider = ScriptedProvider({
        "job_chunk_1.pdf": [FailureReason.TRIGGER_NOT_FOUND],
    })

    results = BatchOrchestrator(provider, max_retries=3, sleep=lambda _: None).translate_all(
        PATHS[:1], "en", "es"
    )

    assert results[0].reason is FailureReason.TRIGGER_NOT_FOUND
    assert provider.calls == ["job_chunk_1.pdf"]


def test_empty_batch_returns_empty_results() -> None:
    assert BatchOrchestrator(ScriptedProvider({})).translate_all([], "en", "es") == []
