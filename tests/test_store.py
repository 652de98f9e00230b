"""Tests for the result store and the active rate schedule context."""
from freight_invoice.core.models import (
    ChargeRate,
    ComparisonStatus,
    ExtractedRecord,
    ModeRates,
    RateSchedule,
    ShipmentMode,
)
from freight_invoice.pipeline.store import RateScheduleContext, ResultStore


def make_record(invoice_number="INV1", filename="a.pdf", service=0.0) -> ExtractedRecord:
    return ExtractedRecord(
        invoice_number=invoice_number,
        source_filename=filename,
        shipment_mode=ShipmentMode.AIR,
        service_charge_actual=service,
    )


class TestResultStore:
    def test_same_invoice_and_file_stored_once(self):
        store = ResultStore()

        assert store.add(make_record()) == [make_record()]
        assert store.add(make_record()) == []
        assert len(store) == 1

    def test_same_invoice_in_different_files_kept(self):
        store = ResultStore()
        added = store.add([make_record(filename="a.pdf"), make_record(filename="b.pdf")])
        assert len(added) == 2
        assert len(store) == 2

    def test_insertion_order_preserved(self):
        store = ResultStore()
        store.add([make_record("B"), make_record("A"), make_record("C")])
        assert [r.invoice_number for r in store] == ["B", "A", "C"]

    def test_clear_allows_re_adding(self):
        store = ResultStore()
        store.add(make_record())
        store.clear()

        assert len(store) == 0
        assert store.add(make_record()) != []

    def test_records_returns_a_copy(self):
        store = ResultStore()
        store.add(make_record())
        store.records.clear()
        assert len(store) == 1


class TestRateScheduleContext:
    def test_replacing_schedule_changes_later_comparisons(self):
        store = ResultStore()
        store.add(make_record(service=3000))
        context = RateScheduleContext()

        assert store.compared(context.active)[0].comparison == ComparisonStatus.NO_QUOTATION_DATA

        context.set(RateSchedule(air=ModeRates(service=ChargeRate(rate=4000))))
        assert store.compared(context.active)[0].comparison == ComparisonStatus.MATCHED

        context.set(RateSchedule(air=ModeRates(service=ChargeRate(rate=2000))))
        assert store.compared(context.active)[0].comparison == ComparisonStatus.MISMATCHED

        context.clear()
        assert context.active is None
        assert store.compared(context.active)[0].comparison == ComparisonStatus.NO_QUOTATION_DATA

    def test_stored_records_never_carry_comparisons(self):
        store = ResultStore()
        store.add(make_record(service=3000))
        store.compared(RateSchedule(air=ModeRates(service=ChargeRate(rate=4000))))
        assert store.records[0].comparison is None
