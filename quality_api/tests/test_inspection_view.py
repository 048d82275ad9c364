"""LotInspectionView: view modes, two-layer state and the batch-save protocol."""

import asyncio
import uuid
from datetime import datetime, timezone

import pytest

from siteproof.core.errors import NotFound, PartialBatchFailure
from siteproof.schemas.common import ApiResult
from siteproof.schemas.conformance import ConformanceFields, ConformanceRecordRead
from siteproof.schemas.inspection import BatchOutcome, LotInspectionState, ViewMode
from siteproof.schemas.itp import AssignmentRead, ITPItemRead, ITPTemplateRead
from siteproof.schemas.projects import LotRead
from siteproof.services.gateways import HttpGateway, ServiceGateway
from siteproof.services.inspection_view import LotInspectionView


def _now():
    return datetime.now(tz=timezone.utc)


class FakeGateway:
    """
    In-memory gateway with scripted save failures.

    ``fail_once`` holds item ids whose next save fails; ``saved`` records every
    save call in order.
    """

    def __init__(self, templates):
        self.lot_id = uuid.uuid4()
        self.templates = templates
        self.records = {}
        self.saved = []
        self.fail_once = set()
        self.release = None
        self.load_gate = None

    def state(self):
        lot = LotRead(id=self.lot_id, project_id=uuid.uuid4(), lot_number="LOT-1", created_at=_now(), updated_at=_now())
        assignments = [
            AssignmentRead(id=uuid.uuid4(), lot_id=self.lot_id, template_id=t.id, assigned_at=_now())
            for t in self.templates
        ]
        return LotInspectionState(
            lot=lot,
            assignments=assignments,
            templates=self.templates,
            items=[i for t in self.templates for i in t.items],
            records=list(self.records.values()),
        )

    async def get_lot_inspection_state(self, lot_id):
        snapshot = self.state()
        if self.load_gate is not None:
            await self.load_gate.wait()
        return ApiResult.ok(snapshot)

    async def save_conformance(self, lot_id, item_id, fields):
        self.saved.append(item_id)
        if self.release is not None:
            await self.release.wait()
        await asyncio.sleep(0)
        if item_id in self.fail_once:
            self.fail_once.discard(item_id)
            return ApiResult.fail("store unavailable", error_type="persistence_failure")
        previous = self.records.get(item_id)
        template_id = next(t.id for t in self.templates for i in t.items if i.id == item_id)
        record = ConformanceRecordRead(
            id=previous.id if previous else uuid.uuid4(),
            lot_id=lot_id,
            item_id=item_id,
            template_id=template_id,
            result_pass_fail=fields.result_pass_fail,
            comments=fields.comments,
            is_non_conformance=fields.result_pass_fail == "FAIL",
            version=(previous.version + 1) if previous else 1,
            created_at=_now(),
            updated_at=_now(),
        )
        self.records[item_id] = record
        return ApiResult.ok(record)

    async def assign_templates(self, lot_id, template_ids):
        raise NotImplementedError

    async def remove_assignment(self, lot_id, ref):
        raise NotImplementedError


def _template(name, n):
    template_id = uuid.uuid4()
    items = [
        ITPItemRead(id=uuid.uuid4(), template_id=template_id, description=f"{name} item {k}", inspection_method="pass_fail", order_index=k)
        for k in range(1, n + 1)
    ]
    return ITPTemplateRead(id=template_id, name=name, items=items, created_at=_now(), updated_at=_now())


@pytest.fixture
def gateway():
    return FakeGateway([_template("T1", 5)])


@pytest.fixture
async def view(gateway):
    v = LotInspectionView(gateway, gateway.lot_id)
    await v.load()
    return v


class TestModes:
    async def test_needs_assignment(self):
        gw = FakeGateway([])
        v = LotInspectionView(gw, gw.lot_id)
        await v.load()
        assert v.mode is ViewMode.NEEDS_ASSIGNMENT
        assert v.items() == []
        assert v.stats().total == 0

    async def test_single_template(self, view, gateway):
        assert view.mode is ViewMode.SINGLE
        assert view.active_template_id == gateway.templates[0].id
        assert len(view.items()) == 5

    async def test_tabbed_defaults_to_first_assignment(self):
        t1, t2 = _template("T1", 2), _template("T2", 3)
        gw = FakeGateway([t1, t2])
        v = LotInspectionView(gw, gw.lot_id)
        await v.load()

        assert v.mode is ViewMode.TABBED
        assert v.active_template_id == t1.id
        assert [(tab.template.id, tab.stats.total) for tab in v.summaries()] == [(t1.id, 2), (t2.id, 3)]

        v.select_template(t2.id)
        assert [i.item.id for i in v.items()] == [i.id for i in t2.items]
        with pytest.raises(NotFound):
            v.select_template(uuid.uuid4())


class TestQuickActions:
    async def test_local_result_is_shown_but_unsaved(self, view, gateway):
        item = gateway.templates[0].items[0]
        view.set_local_result(item.id, "PASS")

        assert view.effective_status(item.id) == "passed"
        assert view.has_unsaved_changes
        assert gateway.saved == []
        assert view.stats().completed == 1

    async def test_verdict_spellings(self, view, gateway):
        a, b, c = gateway.templates[0].items[:3]
        view.set_local_result(a.id, "failed")
        view.set_local_result(b.id, "na")
        view.set_local_result(c.id, "N/A")
        assert [view.effective_status(i.id) for i in (a, b, c)] == ["failed", "na", "na"]
        with pytest.raises(ValueError):
            view.set_local_result(a.id, "maybe")

    async def test_back_to_pending_without_record_discards_edit(self, view, gateway):
        item = gateway.templates[0].items[0]
        view.set_local_result(item.id, "PASS")
        view.set_local_result(item.id, "pending")
        assert not view.has_unsaved_changes
        assert view.effective_status(item.id) == "pending"

    async def test_unknown_item(self, view):
        with pytest.raises(NotFound):
            view.set_local_result(uuid.uuid4(), "PASS")

    async def test_reload_keeps_pending_edits(self, view, gateway):
        item = gateway.templates[0].items[2]
        view.set_local_result(item.id, "FAIL")
        await view.load()
        assert view.effective_status(item.id) == "failed"
        assert view.has_unsaved_changes


class TestSaveAll:
    async def test_nothing_to_save(self, view, gateway):
        result = await view.save_all()
        assert result.outcome is BatchOutcome.NOTHING_TO_SAVE
        assert gateway.saved == []

    async def test_all_succeeded(self, view, gateway):
        items = gateway.templates[0].items
        for item in items:
            view.set_local_result(item.id, "PASS")

        result = await view.save_all()

        assert result.outcome is BatchOutcome.ALL_SUCCEEDED
        assert result.success_count == 5
        assert not view.has_unsaved_changes
        assert all(v.record is not None and v.status == "passed" for v in view.items())
        result.raise_for_failures()

    async def test_partial_failure_then_retry_only_failed(self, view, gateway):
        items = gateway.templates[0].items
        for item in items:
            view.set_local_result(item.id, "PASS")
        failing = {items[1].id, items[3].id}
        gateway.fail_once = set(failing)

        result = await view.save_all()

        assert result.outcome is BatchOutcome.PARTIAL_FAILURE
        assert result.success_count == 3
        assert {f.item_id for f in result.failures} == failing
        assert "3 of 5" in result.message
        assert set(view.unsaved_item_ids()) == failing
        errors = {v.item.id: v.error for v in view.items()}
        assert errors[items[1].id] == "store unavailable"
        assert errors[items[0].id] is None
        with pytest.raises(PartialBatchFailure) as excinfo:
            result.raise_for_failures()
        assert excinfo.value.success_count == 3
        dumped = result.model_dump(mode="json")
        assert dumped["outcome"] == "partial_failure"
        assert {f["error_type"] for f in dumped["failures"]} == {"persistence_failure"}

        gateway.saved.clear()
        retry = await view.save_all()

        assert retry.outcome is BatchOutcome.ALL_SUCCEEDED
        assert set(gateway.saved) == failing
        assert len(gateway.saved) == 2
        assert not view.has_unsaved_changes

    async def test_all_failed(self, view, gateway):
        item = gateway.templates[0].items[0]
        view.set_local_result(item.id, "FAIL")
        gateway.fail_once = {item.id}

        result = await view.save_all()

        assert result.outcome is BatchOutcome.ALL_FAILED
        assert view.has_unsaved_changes
        assert view.effective_status(item.id) == "failed"

    async def test_saves_are_issued_concurrently(self, view, gateway):
        gateway.release = asyncio.Event()
        for item in gateway.templates[0].items:
            view.set_local_result(item.id, "PASS")

        task = asyncio.ensure_future(view.save_all())
        for _ in range(5):
            await asyncio.sleep(0)
        # every request is in flight before any completes
        assert len(gateway.saved) == 5
        gateway.release.set()
        result = await task
        assert result.success_count == 5

    async def test_edit_during_save_stays_pending(self, view, gateway):
        item = gateway.templates[0].items[0]
        gateway.release = asyncio.Event()
        view.set_local_result(item.id, "PASS")

        task = asyncio.ensure_future(view.save_all())
        await asyncio.sleep(0)
        view.set_local_result(item.id, "FAIL")
        gateway.release.set()
        await task

        assert view.effective_status(item.id) == "failed"
        assert view.unsaved_item_ids() == [item.id]

    async def test_late_results_after_close_are_ignored(self, view, gateway):
        item = gateway.templates[0].items[0]
        gateway.release = asyncio.Event()
        view.set_local_result(item.id, "PASS")

        task = asyncio.ensure_future(view.save_all())
        await asyncio.sleep(0)
        view.close()
        gateway.release.set()
        await task

        assert view.unsaved_item_ids() == [item.id]
        assert view.items()[0].record is None


class TestReloadDuringSave:
    async def test_slow_load_keeps_newer_saved_version(self, view, gateway):
        item = gateway.templates[0].items[0]
        view.set_local_result(item.id, "PASS")
        await view.save_all()

        gateway.load_gate = asyncio.Event()
        load = asyncio.ensure_future(view.load())
        await asyncio.sleep(0)
        view.set_local_result(item.id, "FAIL")
        await view.save_all()
        gateway.load_gate.set()
        await load

        record = view.items()[0].record
        assert record.version == 2
        assert record.result_pass_fail == "FAIL"
        assert view.effective_status(item.id) == "failed"
        assert not view.has_unsaved_changes

    async def test_slow_load_keeps_first_saved_record(self, view, gateway):
        item = gateway.templates[0].items[0]
        gateway.load_gate = asyncio.Event()
        load = asyncio.ensure_future(view.load())
        await asyncio.sleep(0)

        view.set_local_result(item.id, "PASS")
        await view.save_all()
        gateway.load_gate.set()
        await load

        assert view.items()[0].record.version == 1
        assert view.effective_status(item.id) == "passed"

    async def test_newer_loaded_version_replaces_local(self, view, gateway):
        item = gateway.templates[0].items[0]
        view.set_local_result(item.id, "PASS")
        await view.save_all()
        # another inspector overwrites the record
        await gateway.save_conformance(gateway.lot_id, item.id, ConformanceFields(result_pass_fail="N/A"))

        await view.load()

        assert view.items()[0].record.version == 2
        assert view.effective_status(item.id) == "na"


class TestServiceGateway:
    async def test_round_trip_through_services(self, session_maker, lot, template_t1, template_t2, assign):
        await assign(lot.id, template_t1.id, template_t2.id)
        v = LotInspectionView(ServiceGateway(session_maker), lot.id)
        result = await v.load()
        assert result.success
        assert v.mode is ViewMode.TABBED

        for item in template_t1.items:
            v.set_local_result(item.id, "PASS")
        saved = await v.save_all()
        assert saved.outcome is BatchOutcome.ALL_SUCCEEDED

        await v.load()
        tabs = {tab.template.id: tab.stats for tab in v.summaries()}
        assert tabs[template_t1.id].percentage == 100
        assert tabs[template_t2.id].completed == 0

        removal = await v.remove_assignment(template_t1.id)
        assert removal.success
        assert removal.data.records_removed == 2
        assert v.mode is ViewMode.SINGLE
        assert v.active_template_id == template_t2.id
        assert {i.template_id for i in v.state.items} == {template_t2.id}
        assert v.state.records == []

    async def test_unassigned_item_fails_inside_envelope(self, session_maker, lot, template_t1, template_t2, assign):
        await assign(lot.id, template_t1.id)
        gw = ServiceGateway(session_maker)
        result = await gw.save_conformance(lot.id, template_t2.items[0].id, None)
        assert not result.success
        assert result.error_type == "not_found"

    async def test_assign_through_view(self, session_maker, lot, template_t1):
        v = LotInspectionView(ServiceGateway(session_maker), lot.id)
        await v.load()
        assert v.mode is ViewMode.NEEDS_ASSIGNMENT

        result = await v.assign_templates([template_t1.id, uuid.uuid4()])
        assert result.success
        assert len(result.data.assigned) == 1
        assert len(result.data.failed) == 1
        assert v.mode is ViewMode.SINGLE


class TestHttpGateway:
    async def test_view_over_http(self, client, lot, template_t1, assign):
        await assign(lot.id, template_t1.id)
        v = LotInspectionView(HttpGateway(client), lot.id)
        assert (await v.load()).success
        assert v.mode is ViewMode.SINGLE

        _, pass_fail = template_t1.items
        v.set_local_result(pass_fail.id, "FAIL", comments="soft spot at grid B2")
        result = await v.save_all()

        assert result.outcome is BatchOutcome.ALL_SUCCEEDED
        (view_item,) = [i for i in v.items() if i.item.id == pass_fail.id]
        assert view_item.record.is_non_conformance is True
        assert view_item.record.comments == "soft spot at grid B2"
        assert v.stats().percentage == 50

    async def test_errors_come_back_as_envelopes(self, client, lot):
        gw = HttpGateway(client)
        result = await gw.remove_assignment(lot.id, uuid.uuid4())
        assert not result.success
        assert result.error_type == "not_found"

        missing = await gw.get_lot_inspection_state(uuid.uuid4())
        assert missing.error_type == "not_found"
