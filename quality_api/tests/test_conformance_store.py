"""ConformanceRecordStore: one record per (lot, item), merge-on-save, derived flag."""

import uuid

import pytest
from sqlalchemy import func, select

from siteproof.core.errors import Conflict, NotFound, PersistenceFailure, ValidationError
from siteproof.db.models import ConformanceRecord
from siteproof.schemas.conformance import ConformanceFields
from siteproof.services.conformance import ConformanceRecordStore


@pytest.fixture
async def assigned_t1(lot, template_t1, assign):
    await assign(lot.id, template_t1.id)
    return template_t1


async def _count(session_maker, lot_id, item_id):
    async with session_maker() as s:
        res = await s.execute(
            select(func.count()).select_from(ConformanceRecord).where(
                ConformanceRecord.lot_id == lot_id, ConformanceRecord.item_id == item_id
            )
        )
        return res.scalar_one()


async def _upsert(session_maker, lot_id, item_id, **fields):
    async with session_maker() as s:
        return await ConformanceRecordStore(s).upsert(lot_id, item_id, ConformanceFields(**fields))


class TestUpsert:
    async def test_merge_keeps_unsupplied_fields(self, session_maker, lot, assigned_t1):
        i1 = assigned_t1.items[0]
        await _upsert(session_maker, lot.id, i1.id, result_numeric=2450.5)
        record = await _upsert(session_maker, lot.id, i1.id, comments="ok")

        assert record.result_numeric == 2450.5
        assert record.comments == "ok"
        assert await _count(session_maker, lot.id, i1.id) == 1

    async def test_repeated_save_is_idempotent(self, session_maker, lot, assigned_t1):
        item = assigned_t1.items[1]
        first = await _upsert(session_maker, lot.id, item.id, result_pass_fail="PASS", comments="a")
        second = await _upsert(session_maker, lot.id, item.id, result_pass_fail="FAIL")

        assert second.id == first.id
        assert second.result_pass_fail == "FAIL"
        assert second.comments == "a"
        assert second.version == first.version + 1
        assert await _count(session_maker, lot.id, item.id) == 1

    @pytest.mark.parametrize(
        "verdict,claimed,expected",
        [("FAIL", False, True), ("PASS", True, False), ("N/A", True, False), (None, True, False)],
    )
    async def test_non_conformance_is_derived(self, session_maker, lot, assigned_t1, verdict, claimed, expected):
        item = assigned_t1.items[1]
        record = await _upsert(
            session_maker, lot.id, item.id, result_pass_fail=verdict, is_non_conformance=claimed
        )
        assert record.is_non_conformance is expected

    async def test_clearing_verdict_clears_flag(self, session_maker, lot, assigned_t1):
        item = assigned_t1.items[1]
        await _upsert(session_maker, lot.id, item.id, result_pass_fail="FAIL")
        record = await _upsert(session_maker, lot.id, item.id, result_pass_fail="pending")
        assert record.result_pass_fail is None
        assert record.is_non_conformance is False

    async def test_empty_partial_only_touches_bookkeeping(self, session_maker, lot, assigned_t1):
        item = assigned_t1.items[0]
        first = await _upsert(session_maker, lot.id, item.id, result_numeric=12.0)
        second = await _upsert(session_maker, lot.id, item.id)

        assert second.result_numeric == 12.0
        assert second.inspection_date >= first.inspection_date
        assert second.version == 2

    async def test_template_is_copied_from_item(self, session_maker, lot, assigned_t1):
        item = assigned_t1.items[0]
        record = await _upsert(session_maker, lot.id, item.id, result_pass_fail="PASS")
        assert record.template_id == assigned_t1.id

    async def test_inspector_is_recorded(self, session_maker, lot, assigned_t1):
        inspector = uuid.uuid4()
        async with session_maker() as s:
            record = await ConformanceRecordStore(s).upsert(
                lot.id, assigned_t1.items[0].id, ConformanceFields(result_pass_fail="PASS"), inspector_id=inspector
            )
        assert record.inspector_id == inspector


class TestUpsertErrors:
    async def test_missing_keys(self, session):
        with pytest.raises(ValidationError):
            await ConformanceRecordStore(session).upsert(None, uuid.uuid4(), ConformanceFields())

    async def test_unknown_lot(self, session, assigned_t1):
        with pytest.raises(NotFound):
            await ConformanceRecordStore(session).upsert(uuid.uuid4(), assigned_t1.items[0].id, ConformanceFields())

    async def test_item_of_unassigned_template(self, session, lot, template_t1, template_t2, assign):
        await assign(lot.id, template_t1.id)
        with pytest.raises(NotFound):
            await ConformanceRecordStore(session).upsert(
                lot.id, template_t2.items[0].id, ConformanceFields(result_pass_fail="PASS")
            )

    async def test_stale_version_is_rejected(self, session_maker, lot, assigned_t1):
        item = assigned_t1.items[1]
        await _upsert(session_maker, lot.id, item.id, result_pass_fail="PASS")
        await _upsert(session_maker, lot.id, item.id, result_pass_fail="FAIL")

        with pytest.raises(Conflict) as excinfo:
            await _upsert(session_maker, lot.id, item.id, result_pass_fail="N/A", expected_version=1)
        assert excinfo.value.details["current_version"] == 2

        record = await _upsert(session_maker, lot.id, item.id, result_pass_fail="N/A", expected_version=2)
        assert record.version == 3

    async def test_database_errors_are_wrapped(self, session_maker, lot, assigned_t1, monkeypatch):
        from sqlalchemy.exc import OperationalError

        async with session_maker() as s:
            store = ConformanceRecordStore(s)

            async def _broken(*args, **kwargs):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

            monkeypatch.setattr(store.records, "find_by_lot_and_item", _broken)
            with pytest.raises(PersistenceFailure) as excinfo:
                await store.upsert(lot.id, assigned_t1.items[0].id, ConformanceFields(result_pass_fail="PASS"))
        assert "database is locked" in excinfo.value.details


class TestReads:
    async def test_find_by_lot_follows_item_order(self, session_maker, lot, assigned_t1):
        second, first = assigned_t1.items[1], assigned_t1.items[0]
        await _upsert(session_maker, lot.id, second.id, result_pass_fail="PASS")
        await _upsert(session_maker, lot.id, first.id, result_numeric=1.0)

        async with session_maker() as s:
            records = await ConformanceRecordStore(s).find_by_lot(lot.id)
        assert [r.item_id for r in records] == [first.id, second.id]

    async def test_find_by_lot_groups_templates_in_assignment_order(
        self, session_maker, lot, template_t1, template_t2, assign
    ):
        await assign(lot.id, template_t2.id)
        await assign(lot.id, template_t1.id)
        for item in (template_t1.items[0], template_t2.items[2], template_t2.items[0]):
            await _upsert(session_maker, lot.id, item.id, result_pass_fail="PASS")

        async with session_maker() as s:
            records = await ConformanceRecordStore(s).find_by_lot(lot.id)
        assert [r.item_id for r in records] == [
            template_t2.items[0].id,
            template_t2.items[2].id,
            template_t1.items[0].id,
        ]

    async def test_find_by_lot_and_item(self, session_maker, lot, assigned_t1):
        item = assigned_t1.items[0]
        async with session_maker() as s:
            assert await ConformanceRecordStore(s).find_by_lot_and_item(lot.id, item.id) is None
        await _upsert(session_maker, lot.id, item.id, result_pass_fail="N/A")
        async with session_maker() as s:
            record = await ConformanceRecordStore(s).find_by_lot_and_item(lot.id, item.id)
        assert record.result_pass_fail == "N/A"

    async def test_non_conformances(self, session_maker, lot, assigned_t1):
        a, b = assigned_t1.items
        await _upsert(session_maker, lot.id, a.id, result_pass_fail="PASS")
        await _upsert(session_maker, lot.id, b.id, result_pass_fail="FAIL")
        async with session_maker() as s:
            records = await ConformanceRecordStore(s).list_non_conformances(lot.id)
        assert [r.item_id for r in records] == [b.id]


class TestApproval:
    async def test_approve_inspected_item(self, session_maker, lot, assigned_t1):
        item = assigned_t1.items[1]
        await _upsert(session_maker, lot.id, item.id, result_pass_fail="PASS")
        approver = uuid.uuid4()
        async with session_maker() as s:
            record = await ConformanceRecordStore(s).approve(lot.id, item.id, approver)
        assert record.approved_by == approver
        assert record.approval_date is not None

    async def test_cannot_approve_uninspected_item(self, session_maker, lot, assigned_t1):
        item = assigned_t1.items[0]
        await _upsert(session_maker, lot.id, item.id, comments="not yet")
        async with session_maker() as s:
            with pytest.raises(ValidationError):
                await ConformanceRecordStore(s).approve(lot.id, item.id, uuid.uuid4())
            with pytest.raises(NotFound):
                await ConformanceRecordStore(s).approve(lot.id, assigned_t1.items[1].id, uuid.uuid4())
