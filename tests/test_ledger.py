from __future__ import annotations

from datetime import timedelta

import pytest

from podcast_deploy.db.time import utcnow
from podcast_deploy.models import DeployRun, Destination, DestinationMode, RunStatus
from podcast_deploy.services.ledger import RunAlreadyFinished, RunLedger, RunNotFound


@pytest.fixture()
def destination(db_session) -> Destination:
    destination = Destination(
        podcast_id="pod-1",
        mode=DestinationMode.FTP,
        name="ftp",
        config_enc="v1:a:b:c",
    )
    db_session.add(destination)
    db_session.commit()
    return destination


@pytest.fixture()
def ledger(db_session) -> RunLedger:
    return RunLedger(db_session)


def test_record_start_creates_running_row(ledger: RunLedger, destination: Destination) -> None:
    run_id = ledger.record_start(destination.id, "pod-1")

    record = ledger.get(run_id)
    assert record.status is RunStatus.RUNNING
    assert record.started_at is not None
    assert record.finished_at is None


def test_record_finish_sets_terminal_state(ledger: RunLedger, destination: Destination) -> None:
    run_id = ledger.record_start(destination.id, "pod-1")

    ledger.record_finish(run_id, RunStatus.SUCCESS, "Uploaded 2 file(s), skipped 0 unchanged.")

    record = ledger.get(run_id)
    assert record.status is RunStatus.SUCCESS
    assert record.finished_at is not None
    assert record.log == "Uploaded 2 file(s), skipped 0 unchanged."


def test_terminal_run_cannot_change(ledger: RunLedger, destination: Destination) -> None:
    run_id = ledger.record_start(destination.id, "pod-1")
    ledger.record_finish(run_id, RunStatus.FAILED, "boom")

    with pytest.raises(RunAlreadyFinished):
        ledger.record_finish(run_id, RunStatus.SUCCESS, "later")
    assert ledger.get(run_id).log == "boom"


def test_cannot_finish_as_running(ledger: RunLedger, destination: Destination) -> None:
    run_id = ledger.record_start(destination.id, "pod-1")
    with pytest.raises(ValueError):
        ledger.record_finish(run_id, RunStatus.RUNNING, "")


def test_unknown_run_raises(ledger: RunLedger) -> None:
    with pytest.raises(RunNotFound):
        ledger.get("nope")
    with pytest.raises(RunNotFound):
        ledger.record_finish("nope", RunStatus.SUCCESS, "")


def test_record_failure_is_terminal_in_one_step(ledger: RunLedger, destination: Destination) -> None:
    run_id = ledger.record_failure(destination.id, "pod-1", "Decryption failed: bad tag")

    record = ledger.get(run_id)
    assert record.status is RunStatus.FAILED
    assert record.finished_at is not None
    assert record.log == "Decryption failed: bad tag"


def test_history_is_newest_first(ledger: RunLedger, destination: Destination) -> None:
    first = ledger.record_failure(destination.id, "pod-1", "one")
    second = ledger.record_failure(destination.id, "pod-1", "two")

    assert [run.id for run in ledger.list_for_destination(destination.id)] == [second, first]
    assert ledger.latest_for_destination(destination.id).id == second
    assert ledger.latest_for_destination("other") is None


def test_reconcile_stale_fails_only_old_running_rows(
    ledger: RunLedger, destination: Destination, db_session
) -> None:
    old_id = ledger.record_start(destination.id, "pod-1")
    fresh_id = ledger.record_start(destination.id, "pod-1")
    old = db_session.get(DeployRun, old_id)
    old.started_at = utcnow() - timedelta(hours=5)
    db_session.commit()

    closed = ledger.reconcile_stale(timedelta(minutes=120))

    assert closed == 1
    old_record = ledger.get(old_id)
    assert old_record.status is RunStatus.FAILED
    assert old_record.log == "Run abandoned: no result after 120 minutes (marked by reconciliation)"
    assert ledger.get(fresh_id).status is RunStatus.RUNNING
