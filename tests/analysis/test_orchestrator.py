"""Analysis job behaviour: status lifecycle, per-photo isolation, idempotence, notification."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import func, select, update

from riskaudit.analysis import orchestrator as orchestrator_module
from riskaudit.analysis.orchestrator import AnalysisOrchestrator
from riskaudit.config import Settings
from riskaudit.db import crud
from riskaudit.errors import AnalyzerError
from riskaudit.jobs.queue import InProcessJobQueue, JobState
from riskaudit.models import Finding, Inspection, InspectionStatus, Photo

from tests.helpers import RecordingNotifier, ScriptedAnalyzer, finding


@pytest.fixture(autouse=True)
def fake_pdf(monkeypatch):
    async def _fake_report(inspection, image_store):
        return b"%PDF-1.4 fake"
    monkeypatch.setattr(orchestrator_module, "generate_inspection_report", _fake_report)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def build(session_factory, image_store, notifier):
    def _build(analyzer):
        return AnalysisOrchestrator(
            session_factory=session_factory,
            image_store=image_store,
            analyzer=analyzer,
            notifier=notifier,
            settings=Settings(),
        )
    return _build


async def _reload(db, inspection_id) -> Inspection:
    return await crud.load_inspection_with_photos(db, inspection_id, refresh=True)


async def _finding_count(db) -> int:
    return (await db.execute(select(func.count(Finding.id)))).scalar_one()


async def test_all_photos_succeed(db, make_inspection, build, notifier, tenant):
    inspection = await make_inspection(3)
    ids = [p.id for p in inspection.photos]
    analyzer = ScriptedAnalyzer(default=[finding()])

    result = await build(analyzer).analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)

    assert result.status == InspectionStatus.COMPLETED.value
    assert (result.analyzed, result.failed, result.skipped) == (3, 0, 0)
    loaded = await _reload(db, inspection.id)
    assert loaded.status == "Completed"
    assert loaded.completed_at is not None
    assert all(p.is_analyzed for p in loaded.photos)
    assert loaded.total_findings == 3
    assert len(analyzer.calls) == 3


async def test_all_photos_fail(db, make_inspection, build, notifier, tenant):
    inspection = await make_inspection(3)
    ids = [p.id for p in inspection.photos]
    analyzer = ScriptedAnalyzer(default=AnalyzerError("model unavailable"))

    result = await build(analyzer).analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)

    assert result.status == "Failed"
    assert (result.analyzed, result.failed) == (0, 3)
    loaded = await _reload(db, inspection.id)
    assert loaded.status == "Failed"
    assert loaded.completed_at is not None
    assert not any(p.is_analyzed for p in loaded.photos)
    assert await _finding_count(db) == 0


async def test_partial_success_two_findings_clean_photo_and_error(db, make_inspection, build, tenant):
    inspection = await make_inspection(3)
    ids = [p.id for p in inspection.photos]
    analyzer = ScriptedAnalyzer([
        [finding("Missing guard rail"), finding("Oil spill", "medio")],
        [],
        AnalyzerError("timeout"),
    ])

    result = await build(analyzer).analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)

    assert result.status == "Completed"
    assert (result.analyzed, result.failed) == (2, 1)
    loaded = await _reload(db, inspection.id)
    by_id = {p.id: p for p in loaded.photos}
    assert by_id[ids[0]].is_analyzed and len(by_id[ids[0]].findings) == 2
    assert by_id[ids[1]].is_analyzed and by_id[ids[1]].findings == []
    assert not by_id[ids[2]].is_analyzed
    assert loaded.total_findings == 2
    assert sorted(f.risk_level for f in by_id[ids[0]].findings) == ["high", "medium"]


async def test_unknown_inspection_is_discarded(db, build, notifier):
    analyzer = ScriptedAnalyzer(default=[finding()])

    result = await build(analyzer).analyze_inspection_photos("01NOTAREALINSPECTION00000", ["x"], "u")

    assert result.found is False
    assert result.status is None
    assert analyzer.calls == []
    assert notifier.sent == []
    assert await _finding_count(db) == 0


async def test_commit_failure_on_second_photo_fails_job(db, make_inspection, build, notifier, tenant, monkeypatch):
    inspection = await make_inspection(3)
    ids = [p.id for p in inspection.photos]
    analyzer = ScriptedAnalyzer(default=[finding()])

    real_record = crud.record_photo_findings
    calls = {"n": 0}

    async def flaky_record(db_, photo, findings):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("database is locked")
        return await real_record(db_, photo, findings)

    monkeypatch.setattr(crud, "record_photo_findings", flaky_record)

    result = await build(analyzer).analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)

    assert result.status == "Failed"
    loaded = await _reload(db, inspection.id)
    by_id = {p.id: p for p in loaded.photos}
    assert loaded.status == "Failed"
    assert loaded.completed_at is not None
    assert by_id[ids[0]].is_analyzed and len(by_id[ids[0]].findings) == 1
    assert not by_id[ids[1]].is_analyzed
    assert not by_id[ids[2]].is_analyzed
    assert notifier.sent == []


async def test_rerun_is_idempotent(db, make_inspection, build, tenant):
    inspection = await make_inspection(2)
    ids = [p.id for p in inspection.photos]
    analyzer = ScriptedAnalyzer(default=[finding()])
    orch = build(analyzer)

    await orch.analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)
    first = await _reload(db, inspection.id)
    completed_at = first.completed_at

    second = await orch.analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)

    assert second.status == "Completed"
    assert second.skipped == 2
    assert len(analyzer.calls) == 2
    assert await _finding_count(db) == 2
    loaded = await _reload(db, inspection.id)
    assert loaded.completed_at == completed_at


async def test_rerun_analyzes_only_pending_photos(db, make_inspection, build, tenant):
    inspection = await make_inspection(2)
    ids = [p.id for p in inspection.photos]
    analyzer = ScriptedAnalyzer([[finding()], AnalyzerError("boom"), [finding("Blocked exit")]])
    orch = build(analyzer)

    first = await orch.analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)
    assert first.status == "Completed"

    second = await orch.analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)

    assert (second.analyzed, second.skipped) == (1, 1)
    assert len(analyzer.calls) == 3
    loaded = await _reload(db, inspection.id)
    assert all(p.is_analyzed for p in loaded.photos)
    assert loaded.total_findings == 2


async def test_rerun_where_every_requested_photo_fails_ends_failed(db, make_inspection, build, tenant):
    inspection = await make_inspection(3)
    a, b, c = [p.id for p in inspection.photos]
    analyzer = ScriptedAnalyzer([[finding()], AnalyzerError("b"), AnalyzerError("c")])
    orch = build(analyzer)

    first = await orch.analyze_inspection_photos(inspection.id, [a], tenant.inspector.id)
    second = await orch.analyze_inspection_photos(inspection.id, [b, c], tenant.inspector.id)

    assert first.status == "Completed"
    assert second.status == "Failed"
    assert (second.analyzed, second.failed) == (0, 2)
    loaded = await _reload(db, inspection.id)
    assert loaded.status == "Failed"
    assert loaded.completed_at is not None
    assert {p.id: p.is_analyzed for p in loaded.photos} == {a: True, b: False, c: False}


async def test_photo_taken_by_another_job_does_not_count_as_success(
    db, session_factory, make_inspection, build, tenant,
):
    inspection = await make_inspection(1)
    photo_id = inspection.photos[0].id
    analyzer = ScriptedAnalyzer(default=[finding()])

    async def analyzed_elsewhere():
        # Another worker records the photo while this job is still analyzing it
        async with session_factory() as other:
            await other.execute(
                update(Photo).where(Photo.id == photo_id).values(is_analyzed=True)
            )
            await other.commit()

    analyzer.on_call = analyzed_elsewhere
    result = await build(analyzer).analyze_inspection_photos(inspection.id, [photo_id], tenant.inspector.id)

    assert (result.analyzed, result.skipped) == (0, 1)
    assert result.status == "Failed"


async def test_status_is_analyzing_while_photos_run(db, session_factory, make_inspection, build, tenant):
    inspection = await make_inspection(2)
    ids = [p.id for p in inspection.photos]
    analyzer = ScriptedAnalyzer(default=[finding()])
    observed = []

    async def poll():
        async with session_factory() as other:
            row = await other.get(Inspection, inspection.id)
            observed.append((row.status, row.completed_at))

    analyzer.on_call = poll
    await build(analyzer).analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)

    assert observed == [("Analyzing", None), ("Analyzing", None)]


async def test_unreadable_image_is_a_photo_failure(db, make_inspection, build, image_store, tenant):
    inspection = await make_inspection(2)
    ids = [p.id for p in inspection.photos]
    assert await image_store.delete_image(inspection.photos[0].image_ref)
    analyzer = ScriptedAnalyzer(default=[finding()])

    result = await build(analyzer).analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)

    assert result.status == "Completed"
    assert (result.analyzed, result.failed) == (1, 1)
    assert len(analyzer.calls) == 1


async def test_missing_photo_ids_are_skipped(db, make_inspection, build, tenant):
    inspection = await make_inspection(1)
    analyzer = ScriptedAnalyzer(default=[finding()])

    result = await build(analyzer).analyze_inspection_photos(
        inspection.id, ["01NOSUCHPHOTO0000000000000", inspection.photos[0].id], tenant.inspector.id,
    )

    assert (result.analyzed, result.skipped) == (1, 1)
    assert result.status == "Completed"


async def test_owner_is_emailed_report(db, make_inspection, build, notifier, tenant):
    inspection = await make_inspection(1)
    analyzer = ScriptedAnalyzer(default=[finding()])

    result = await build(analyzer).analyze_inspection_photos(
        inspection.id, [inspection.photos[0].id], tenant.inspector.id,
    )

    assert result.notified is True
    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent["recipient"] == "ines@acme.test"
    assert sent["subject"] == "Analysis complete - Northwind Foundry"
    expected_name = f"inspection_report_{inspection.started_at.strftime('%Y%m%d')}.pdf"
    assert sent["attachments"] == {expected_name: b"%PDF-1.4 fake"}


async def test_report_failure_still_sends_email(db, make_inspection, build, notifier, tenant, monkeypatch):
    async def broken_report(inspection, image_store):
        raise RuntimeError("PDF generation failed with 1 errors")
    monkeypatch.setattr(orchestrator_module, "generate_inspection_report", broken_report)
    inspection = await make_inspection(1)

    result = await build(ScriptedAnalyzer(default=[finding()])).analyze_inspection_photos(
        inspection.id, [inspection.photos[0].id], tenant.inspector.id,
    )

    assert result.status == "Completed"
    assert len(notifier.sent) == 1
    assert notifier.sent[0]["attachments"] == {}


async def test_notification_error_does_not_change_status(db, session_factory, image_store, make_inspection, tenant):
    inspection = await make_inspection(1)
    orch = AnalysisOrchestrator(
        session_factory, image_store, ScriptedAnalyzer(default=[finding()]),
        RecordingNotifier(error=ConnectionError("smtp down")), Settings(),
    )

    result = await orch.analyze_inspection_photos(inspection.id, [inspection.photos[0].id], tenant.inspector.id)

    assert result.status == "Completed"
    assert result.notified is False
    loaded = await _reload(db, inspection.id)
    assert loaded.status == "Completed"


async def test_organization_prompt_overrides_master_prompt(db, make_inspection, build, tenant):
    row = await crud.get_or_create_organization_settings(db, tenant.org.id)
    await crud.update_organization_settings(db, row, analysis_prompt="Focus on fall hazards only.")
    inspection = await make_inspection(1)
    analyzer = ScriptedAnalyzer(default=[])

    await build(analyzer).analyze_inspection_photos(inspection.id, [inspection.photos[0].id], tenant.inspector.id)

    assert analyzer.calls[0][1] == "Focus on fall hazards only."


async def test_master_prompt_used_without_override(db, make_inspection, build, tenant):
    inspection = await make_inspection(1)
    analyzer = ScriptedAnalyzer(default=[])

    await build(analyzer).analyze_inspection_photos(inspection.id, [inspection.photos[0].id], tenant.inspector.id)

    assert analyzer.calls[0][1] == Settings().analyzer.master_prompt


async def test_queue_shutdown_lets_running_job_finish(db, make_inspection, build, tenant):
    inspection = await make_inspection(2)
    ids = [p.id for p in inspection.photos]
    inside = asyncio.Event()
    release = asyncio.Event()
    analyzer = ScriptedAnalyzer(default=[finding()])

    async def block():
        inside.set()
        await release.wait()

    analyzer.on_call = block
    queue = InProcessJobQueue(build(analyzer).analyze_inspection_photos, worker_count=1)
    queue.start()
    job_id = await queue.enqueue(inspection.id, ids, tenant.inspector.id)
    await asyncio.wait_for(inside.wait(), timeout=5)

    stopping = asyncio.create_task(queue.stop(drain=False))
    await asyncio.sleep(0.05)
    release.set()
    await asyncio.wait_for(stopping, timeout=10)

    assert queue.get_job(job_id).state == JobState.SUCCEEDED
    loaded = await _reload(db, inspection.id)
    assert loaded.status == "Completed"
    assert loaded.completed_at is not None


async def test_cancelled_job_leaves_inspection_failed(db, make_inspection, build, tenant):
    inspection = await make_inspection(2)
    ids = [p.id for p in inspection.photos]
    inside = asyncio.Event()
    analyzer = ScriptedAnalyzer([[finding()]], default=[finding()])

    async def block_on_second_photo():
        if len(analyzer.calls) == 2:
            inside.set()
            await asyncio.Event().wait()

    analyzer.on_call = block_on_second_photo
    task = asyncio.create_task(
        build(analyzer).analyze_inspection_photos(inspection.id, ids, tenant.inspector.id)
    )
    await asyncio.wait_for(inside.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    loaded = await _reload(db, inspection.id)
    assert loaded.status == "Failed"
    assert loaded.completed_at is not None
    assert sum(p.is_analyzed for p in loaded.photos) == 1


async def test_startup_sweep_fails_inspections_left_analyzing(db, make_inspection, build):
    interrupted = await make_inspection(1)
    done = await make_inspection(1)
    interrupted.status = InspectionStatus.ANALYZING.value
    done.status = InspectionStatus.COMPLETED.value
    await db.commit()

    closed = await build(ScriptedAnalyzer()).fail_interrupted()

    assert closed == 1
    swept = await _reload(db, interrupted.id)
    assert swept.status == "Failed"
    assert swept.completed_at is not None
    untouched = await _reload(db, done.id)
    assert untouched.status == "Completed"
