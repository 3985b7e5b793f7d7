import pytest

from dashboard.cells import (
    MSG_BAD_ON_SALE,
    MSG_NEGATIVE,
    MSG_NOT_A_NUMBER,
    MSG_SAVE_FAILED,
    MSG_TOO_HIGH,
    OnSaleCell,
    PriceCell,
    cell_for,
    normalize_price_input,
)
from dashboard.table import RecordsTable


class RecordingUpdate:
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def __call__(self, record_id, patch):
        self.calls.append((record_id, patch))
        if self.error:
            raise self.error
        return self.result


@pytest.mark.parametrize(
    "text, expected",
    [("70", 70.0), ("70.5", 70.5), ("70,5", 70.5), (" 12 ", 12.0), ("", None), ("abc", None), ("inf", None)],
)
def test_normalize_price_input(text, expected):
    assert normalize_price_input(text) == expected


def test_price_commit_rounds_and_saves(seed_records):
    table = RecordsTable(seed_records)
    update = RecordingUpdate()
    cell = PriceCell(table, "w-1", update)
    cell.edit("80,555")
    assert cell.commit() is True
    assert update.calls == [("w-1", {"price": 80.56})]
    assert table.find_row("w-1")["price"] == 80.56
    assert cell.draft == "80.56"
    assert cell.error is None
    assert cell.saving is False


@pytest.mark.parametrize(
    "text, message",
    [
        ("", MSG_NOT_A_NUMBER),
        ("dieci", MSG_NOT_A_NUMBER),
        ("-5", MSG_NEGATIVE),
        ("100000.01", MSG_TOO_HIGH),
        ("1e300", MSG_TOO_HIGH),
    ],
)
def test_price_commit_rejects_locally(seed_records, text, message):
    table = RecordsTable(seed_records)
    update = RecordingUpdate()
    cell = PriceCell(table, "w-1", update)
    cell.edit(text)
    assert cell.commit() is False
    assert cell.error == message
    assert cell.draft == "70"
    assert update.calls == []
    assert table.find_row("w-1")["price"] == 70


def test_unchanged_price_skips_update(seed_records):
    update = RecordingUpdate()
    cell = PriceCell(RecordsTable(seed_records), "w-1", update)
    cell.edit("70.00")
    assert cell.commit() is False
    assert update.calls == []
    assert cell.error is None


def test_failed_save_rolls_back(seed_records):
    table = RecordsTable(seed_records)
    update = RecordingUpdate(error=RuntimeError("PATCH failed"))
    cell = PriceCell(table, "w-2", update)
    cell.edit("50")
    assert cell.commit() is False
    assert len(update.calls) == 1
    assert cell.error == MSG_SAVE_FAILED
    assert cell.value == 45.5
    assert cell.draft == "45.5"
    assert table.find_row("w-2")["price"] == 45.5
    assert cell.saving is False


def test_save_reconciles_with_stored_record(seed_records):
    table = RecordsTable(seed_records)
    stored = {**seed_records[0], "price": 33.3}
    cell = PriceCell(table, "w-1", RecordingUpdate(result=stored))
    cell.edit("33.30")
    assert cell.commit() is True
    assert table.find_row("w-1")["price"] == 33.3


def test_on_sale_commit(seed_records):
    table = RecordsTable(seed_records)
    update = RecordingUpdate()
    cell = OnSaleCell(table, "w-1", update)
    cell.edit("SI")
    assert cell.commit() is False
    cell.edit("NO")
    assert cell.commit() is True
    assert update.calls == [("w-1", {"on_sale": "NO"})]
    assert table.find_row("w-1")["on_sale"] == "NO"


def test_on_sale_rejects_other_values(seed_records):
    update = RecordingUpdate()
    cell = OnSaleCell(RecordsTable(seed_records), "w-1", update)
    cell.edit("yes")
    assert cell.commit() is False
    assert cell.error == MSG_BAD_ON_SALE
    assert update.calls == []


def test_cancel_discards_draft(seed_records):
    cell = PriceCell(RecordsTable(seed_records), "w-2", RecordingUpdate())
    cell.edit("999")
    cell.cancel()
    assert cell.draft == "45.5"


def test_cell_for_rejects_unknown_columns_and_rows(seed_records):
    table = RecordsTable(seed_records)
    assert isinstance(cell_for(table, "w-1", "price", RecordingUpdate()), PriceCell)
    with pytest.raises(KeyError):
        cell_for(table, "w-1", "provider", RecordingUpdate())
    with pytest.raises(KeyError):
        cell_for(table, "missing", "price", RecordingUpdate())
