"""
Monitoring workflow tests: failure isolation, abort rules and the
notify-before-persist ordering.
"""

import pytest

from conftest import WEBHOOK, FakeNotifier, FakeRenderer, RecordingStateManager, entry
from monitoring.cancellation import CancellationToken
from monitoring.error_handler import ErrorSeverity
from monitoring.errors import (
    EnvironmentConnectionError,
    EnvironmentLaunchError,
    ErrorKind,
    ExtractionError,
    NavigationError,
    NotificationError,
    PersistenceError,
)
from monitoring.session import (
    EXIT_ERRORS,
    EXIT_SIGINT,
    EXIT_SIGTERM,
    EXIT_SUCCESS,
    FailedTargetResult,
    SessionStatus,
    summarize,
)
from monitoring.workflow import MonitoringWorkflow, WorkflowState

URLS = ["https://example.com/a", "https://example.com/b", "https://example.com/c"]


def make_workflow(renderer, notifier=None, events=None, state_manager=None, notify_channel=WEBHOOK):
    state_manager = state_manager or RecordingStateManager(events if events is not None else [])
    return MonitoringWorkflow(
        renderer,
        notify_channel=notify_channel,
        notifier_factory=lambda url: notifier,
        state_manager=state_manager,
    )


def test_unchanged_targets_skip_notify_and_persist(write_config, events):
    path = write_config({"targets": [entry(url) for url in URLS]})
    renderer = FakeRenderer(values={url: "$19.99" for url in URLS}, events=events)
    notifier = FakeNotifier(events=events)
    state_manager = RecordingStateManager(events)
    workflow = make_workflow(renderer, notifier, state_manager=state_manager)

    session = workflow.execute(path)

    assert len(session.results) == len(URLS)
    assert session.changes == []
    assert notifier.sent == []
    assert state_manager.calls == 0
    assert session.stage == WorkflowState.DONE
    summary = summarize(session)
    assert summary.status == SessionStatus.SUCCESS
    assert summary.exit_code == EXIT_SUCCESS


def test_price_change_is_notified_and_persisted(write_config, read_config, events):
    path = write_config({"targets": [{"url": "https://u1.example", "css_selector": "#p", "current_value": "$19.99"}]})
    renderer = FakeRenderer(values={"https://u1.example": "$18.49"}, events=events)
    notifier = FakeNotifier(events=events)
    workflow = make_workflow(renderer, notifier, events=events)

    session = workflow.execute(path)

    [outcome] = session.results
    assert outcome.has_changed is True
    assert outcome.old_value == "$19.99"
    assert outcome.new_value == "$18.49"
    assert len(notifier.sent) == 1
    assert session.persisted is True
    assert read_config(path)["targets"][0]["current_value"] == "$18.49"


def test_non_critical_failures_do_not_stop_the_loop(write_config):
    path = write_config({"targets": [entry(url) for url in URLS]})
    renderer = FakeRenderer(
        values={URLS[2]: "$19.99"},
        errors={
            URLS[0]: NavigationError("Navigation timeout: slow page", reason="navigation_timeout"),
            URLS[1]: ExtractionError("Element timeout: #price", reason="selector_timeout"),
        },
    )
    workflow = make_workflow(renderer, FakeNotifier())

    session = workflow.execute(path)

    assert len(session.results) == len(URLS)
    assert isinstance(session.results[0], FailedTargetResult)
    assert session.results[0].error.kind == ErrorKind.TARGET_ERROR
    assert session.results[0].error.severity == ErrorSeverity.HIGH
    assert session.results[1].error.kind == ErrorKind.EXTRACTION_ERROR
    assert session.results[1].error.severity == ErrorSeverity.MEDIUM

    summary = summarize(session)
    assert summary.status == SessionStatus.COMPLETED_WITH_ERRORS
    assert summary.exit_code == EXIT_SUCCESS


def test_critical_failure_mid_loop_aborts(write_config):
    path = write_config({"targets": [entry(url) for url in URLS]})
    renderer = FakeRenderer(
        values={url: "$1" for url in URLS},
        errors={URLS[0]: EnvironmentConnectionError("Browser session lost")},
    )
    workflow = make_workflow(renderer, FakeNotifier())

    session = workflow.execute(path)

    assert len(session.results) < len(URLS)
    assert renderer.fetched == [URLS[0]]
    assert session.aborted_stage == WorkflowState.PROCESSING_TARGETS
    assert renderer.released == 1
    summary = summarize(session)
    assert summary.status == SessionStatus.ABORTED
    assert summary.exit_code == EXIT_ERRORS


def test_results_follow_input_order(write_config):
    path = write_config({"targets": [entry(url) for url in URLS]})
    renderer = FakeRenderer(values={URLS[0]: "x", URLS[2]: "$19.99"}, errors={URLS[1]: ExtractionError("gone")})
    session = make_workflow(renderer, FakeNotifier()).execute(path)

    assert [result.target.url for result in session.results] == URLS


def test_one_page_open_at_a_time_and_always_closed(write_config):
    path = write_config({"targets": [entry(url) for url in URLS]})
    renderer = FakeRenderer(values={URLS[0]: "a", URLS[1]: "b"}, errors={URLS[2]: NavigationError("boom")})
    make_workflow(renderer, FakeNotifier()).execute(path)

    assert renderer.max_open_pages == 1
    assert renderer.open_pages == 0


def test_page_close_failure_does_not_affect_outcome(write_config):
    path = write_config({"targets": [entry(URLS[0])]})
    renderer = FakeRenderer(values={URLS[0]: "$19.99"}, close_error=RuntimeError("tab already gone"))
    session = make_workflow(renderer, FakeNotifier()).execute(path)

    assert session.errors == []
    assert session.results[0].has_changed is False


def test_notifications_complete_before_persist(write_config, events):
    path = write_config({"targets": [entry(url) for url in URLS]})
    renderer = FakeRenderer(values={url: "new" for url in URLS}, events=events)
    notifier = FakeNotifier(events=events)
    workflow = make_workflow(renderer, notifier, events=events)

    session = workflow.execute(path)

    persist_index = events.index("persist")
    notify_indexes = [i for i, event in enumerate(events) if isinstance(event, tuple) and event[0] == "notify"]
    assert len(notify_indexes) == len(URLS)
    assert max(notify_indexes) < persist_index
    assert all(attempt.completed_at <= session.persist_started_at for attempt in session.notifications)
    # every target is attempted before the first notification
    fetch_indexes = [i for i, event in enumerate(events) if isinstance(event, tuple) and event[0] == "fetch"]
    assert max(fetch_indexes) < min(notify_indexes)


def test_failed_notification_is_isolated_and_persist_still_runs(write_config, read_config, events):
    path = write_config({"targets": [entry(URLS[0]), entry(URLS[1])]})
    renderer = FakeRenderer(values={URLS[0]: "$1.00", URLS[1]: "$2.00"}, events=events)
    notifier = FakeNotifier(
        results={URLS[0]: NotificationError("Slack webhook failed with status 500")},
        events=events,
    )
    workflow = make_workflow(renderer, notifier, events=events)

    session = workflow.execute(path)

    assert [change.url for change in notifier.sent] == [URLS[0], URLS[1]]
    [error] = session.errors
    assert error.kind == ErrorKind.NOTIFICATION_ERROR
    assert error.severity == ErrorSeverity.MEDIUM
    assert session.persisted is True
    values = [item["current_value"] for item in read_config(path)["targets"]]
    assert values == ["$1.00", "$2.00"]


def test_rejected_notification_is_recorded(write_config):
    path = write_config({"targets": [entry(URLS[0])]})
    renderer = FakeRenderer(values={URLS[0]: "changed"})
    workflow = make_workflow(renderer, FakeNotifier(results={URLS[0]: False}))

    result = workflow.execute(path)

    assert [error.kind for error in result.errors] == [ErrorKind.NOTIFICATION_ERROR]
    assert result.notifications[0].delivered is False


def test_persistence_failure_aborts_and_changes_are_not_committed(write_config):
    class FailingStateManager:
        def update_and_persist(self, file_path, targets, changes):
            raise PersistenceError(f"No write permission for file: {file_path}", reason="file_not_writable")

    path = write_config({"targets": [entry(URLS[0])]})
    renderer = FakeRenderer(values={URLS[0]: "changed"})
    workflow = make_workflow(renderer, FakeNotifier(), state_manager=FailingStateManager())

    session = workflow.execute(path)

    [error] = session.errors
    assert error.kind == ErrorKind.PERSISTENCE_ERROR
    assert error.severity == ErrorSeverity.CRITICAL
    assert session.aborted_stage == WorkflowState.PERSISTING
    assert session.persisted is False
    summary = summarize(session)
    assert summary.status == SessionStatus.ABORTED
    assert summary.committed_changes == 0
    assert summary.exit_code == EXIT_ERRORS


def test_missing_config_aborts_before_launching_chrome(tmp_path):
    renderer = FakeRenderer()
    session = make_workflow(renderer, FakeNotifier()).execute(tmp_path / "missing.json")

    [error] = session.errors
    assert error.kind == ErrorKind.CONFIG_ERROR
    assert session.aborted_stage == WorkflowState.LOADING
    assert renderer.events == []
    assert session.end_time is not None


def test_launch_failure_aborts(write_config):
    path = write_config({"targets": [entry(URLS[0])]})
    renderer = FakeRenderer(acquire_error=EnvironmentLaunchError("Failed to launch Chrome: no binary"))

    session = make_workflow(renderer, FakeNotifier()).execute(path)

    assert session.errors[0].kind == ErrorKind.CHROME_ERROR
    assert session.aborted_stage == WorkflowState.ENVIRONMENT_READY
    assert session.results == []
    assert renderer.released == 0


def test_untagged_launch_failure_is_still_critical(write_config):
    path = write_config({"targets": [entry(URLS[0])]})
    renderer = FakeRenderer(acquire_error=RuntimeError("chromedriver crashed"))

    session = make_workflow(renderer, FakeNotifier()).execute(path)

    assert session.errors[0].severity == ErrorSeverity.CRITICAL
    assert summarize(session).status == SessionStatus.ABORTED


def test_webhook_from_config_file_is_used(write_config):
    path = write_config({"slack_webhook": WEBHOOK, "targets": [entry(URLS[0])]})
    notifier = FakeNotifier()
    channels = []

    def factory(url):
        channels.append(url)
        return notifier

    workflow = MonitoringWorkflow(
        FakeRenderer(values={URLS[0]: "changed"}),
        notifier_factory=factory,
        state_manager=RecordingStateManager([]),
    )
    session = workflow.execute(path)

    assert channels == [WEBHOOK]
    assert session.notify_channel == WEBHOOK
    assert len(notifier.sent) == 1


def test_without_channel_changes_are_still_persisted(write_config, read_config):
    path = write_config({"targets": [entry(URLS[0])]})
    workflow = make_workflow(FakeRenderer(values={URLS[0]: "changed"}), None, notify_channel=None)

    session = workflow.execute(path)

    assert session.notifications == []
    assert session.persisted is True
    assert read_config(path)["targets"][0]["current_value"] == "changed"


def test_cancellation_stops_before_next_target(write_config):
    path = write_config({"targets": [entry(url) for url in URLS]})
    token = CancellationToken()

    class CancellingRenderer(FakeRenderer):
        def fetch_fragment(self, page, url, selector, timeouts=None):
            token.cancel("SIGINT")
            return super().fetch_fragment(page, url, selector, timeouts)

    renderer = CancellingRenderer(values={url: "$19.99" for url in URLS})
    session = make_workflow(renderer, FakeNotifier()).execute(path, cancel_token=token)

    assert renderer.fetched == [URLS[0]]
    assert session.cancelled_by == "SIGINT"
    assert renderer.released == 1
    summary = summarize(session)
    assert summary.status == SessionStatus.CANCELLED
    assert summary.exit_code == EXIT_SIGINT


def test_cleanup_runs_once_even_when_release_fails(write_config):
    class BrokenRelease(FakeRenderer):
        def release_environment(self, env):
            super().release_environment(env)
            raise RuntimeError("quit hung")

    path = write_config({"targets": [entry(URLS[0])]})
    renderer = BrokenRelease(values={URLS[0]: "$19.99"})

    session = make_workflow(renderer, FakeNotifier()).execute(path)

    assert renderer.released == 1
    assert session.end_time is not None
    assert summarize(session).status == SessionStatus.SUCCESS


@pytest.mark.parametrize("stored", [None, 123])
def test_non_string_baselines_compare_as_text(write_config, stored):
    path = write_config({"targets": [entry(URLS[0], value=stored)]})
    renderer = FakeRenderer(values={URLS[0]: "123"})

    session = make_workflow(renderer, FakeNotifier()).execute(path)

    assert session.results[0].has_changed is (stored is None)


def test_cancellation_after_notify_skips_persist(write_config, read_config, events):
    path = write_config({"targets": [entry(URLS[0]), entry(URLS[1])]})
    token = CancellationToken()

    class CancellingNotifier(FakeNotifier):
        def notify(self, change):
            token.cancel("SIGTERM")
            return super().notify(change)

    renderer = FakeRenderer(values={URLS[0]: "$1.00", URLS[1]: "$2.00"}, events=events)
    notifier = CancellingNotifier(events=events)
    state_manager = RecordingStateManager(events)
    workflow = make_workflow(renderer, notifier, state_manager=state_manager)

    session = workflow.execute(path, cancel_token=token)

    assert [change.url for change in notifier.sent] == [URLS[0], URLS[1]]
    assert state_manager.calls == 0
    assert session.persisted is False
    assert [item["current_value"] for item in read_config(path)["targets"]] == ["$19.99", "$19.99"]
    summary = summarize(session)
    assert summary.status == SessionStatus.CANCELLED
    assert summary.committed_changes == 0
    assert summary.exit_code == EXIT_SIGTERM
