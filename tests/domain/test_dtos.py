"""
Tests for boundary parsing in ``procurement_kernel.domain.dtos``.

Caller payloads and extraction output both go through these constructors,
so malformed input must surface as ValidationError with the offending
field named.
"""

from dataclasses import FrozenInstanceError
from datetime import date, datetime
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from procurement_kernel.domain.dtos import (
    AgreementLineSpec,
    DateRange,
    InvoiceDraft,
    InvoiceLineSpec,
    parse_date,
    parse_decimal,
    parse_quantity,
)
from procurement_kernel.exceptions import ValidationError


class TestParsingHelpers:

    def test_float_goes_through_str(self):
        assert parse_decimal(0.1, "amount") == Decimal("0.1")

    @pytest.mark.parametrize("value", [None, True, "abc", "NaN", "Infinity"])
    def test_rejected_money_values(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_decimal(value, "amount")
        assert exc_info.value.field == "amount"

    def test_whole_number_quantity(self):
        assert parse_quantity("10", "quantity") == 10
        assert parse_quantity(Decimal("3.000"), "quantity") == 3

    def test_fractional_quantity_rejected(self):
        with pytest.raises(ValidationError):
            parse_quantity("2.5", "quantity")

    def test_dates_from_iso_strings_and_timestamps(self):
        assert parse_date("2025-01-31", "d") == date(2025, 1, 31)
        assert parse_date("2025-01-31T23:59:59Z", "d") == date(2025, 1, 31)
        assert parse_date(datetime(2025, 1, 31, 12), "d") == date(2025, 1, 31)

    def test_bad_date_rejected(self):
        with pytest.raises(ValidationError):
            parse_date("31/01/2025", "receipt_date")


class TestAgreementLineSpec:

    def test_from_raw_accepts_camel_case(self):
        line = AgreementLineSpec.from_raw(
            {"itemName": "A4 Paper", "quantity": 10, "unitPrice": "1000000"},
        )
        assert line.item_name == "A4 Paper"
        assert line.subtotal == Decimal("10000000")

    @pytest.mark.parametrize(
        "raw, field",
        [
            ({"itemName": "", "quantity": 1, "unitPrice": 1}, "item_name"),
            ({"itemName": "x", "quantity": 0, "unitPrice": 1}, "quantity"),
            ({"itemName": "x", "quantity": 1, "unitPrice": 0}, "unit_price"),
            ({"itemName": "x", "quantity": 1}, "unit_price"),
        ],
    )
    def test_invalid_lines(self, raw, field):
        with pytest.raises(ValidationError) as exc_info:
            AgreementLineSpec.from_raw(raw)
        assert exc_info.value.field == field

    @given(
        lines=st.lists(
            st.tuples(
                st.integers(min_value=1, max_value=10_000),
                st.decimals(
                    min_value=Decimal("0.01"), max_value=Decimal("100000000"), places=2,
                ),
            ),
            min_size=1,
            max_size=8,
        ),
    )
    def test_subtotals_sum_to_total(self, lines):
        specs = [AgreementLineSpec("item", qty, price) for qty, price in lines]
        total = sum((spec.subtotal for spec in specs), Decimal("0"))

        assert total == sum((price * qty for qty, price in lines), Decimal("0"))
        assert all(spec.subtotal >= spec.unit_price for spec in specs)


class TestInvoiceDraft:

    def _raw(self, **overrides):
        raw = {
            "vendorName": "PT Sumber Makmur",
            "invoiceNumber": "INV-001",
            "date": "2025-01-15",
            "items": [
                {"description": "A4 Paper", "quantity": 2, "unitPrice": "5000000"},
                {"description": "Toner", "quantity": 1, "unitPrice": "1000000"},
            ],
            "taxAmount": "1000000",
            "confidenceScore": 0.95,
        }
        raw.update(overrides)
        return raw

    def test_from_mapping_totals(self):
        draft = InvoiceDraft.from_mapping(self._raw())
        assert draft.subtotal == Decimal("11000000")
        assert draft.grand_total == Decimal("12000000")
        assert draft.total_quantity == 3
        assert draft.confidence_score == Decimal("0.95")

    def test_snake_case_keys(self):
        draft = InvoiceDraft.from_mapping({
            "vendor_name": "V", "invoice_number": "1", "receipt_date": "2025-02-01",
            "items": [{"description": "x", "quantity": 1, "unit_price": 3}],
        })
        assert draft.receipt_date == date(2025, 2, 1)
        assert draft.tax_amount == Decimal("0")

    def test_null_spelling_does_not_hide_the_other(self):
        draft = InvoiceDraft.from_mapping(self._raw(
            vendor_name=None,
            invoice_number=None,
            receipt_date=None,
            tax_amount=None,
            items=[{"description": "x", "quantity": 2, "unit_price": None, "unitPrice": "5"}],
        ))
        assert draft.vendor_name == "PT Sumber Makmur"
        assert draft.invoice_number == "INV-001"
        assert draft.receipt_date == date(2025, 1, 15)
        assert draft.items[0].unit_price == Decimal("5")
        assert draft.tax_amount == Decimal("1000000")

    def test_agreement_line_null_spelling(self):
        line = AgreementLineSpec.from_raw(
            {"item_name": None, "itemName": "A4 Paper", "quantity": 1, "unit_price": None, "unitPrice": "7"},
        )
        assert line.item_name == "A4 Paper"
        assert line.unit_price == Decimal("7")

    def test_zero_quantity_is_structurally_allowed(self):
        draft = InvoiceDraft.from_mapping(
            self._raw(items=[{"description": "x", "quantity": 0, "unitPrice": 1}]),
        )
        assert draft.total_quantity == 0

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"items": []}, "items"),
            ({"items": "A4 Paper"}, "items"),
            ({"items": ["A4 Paper"]}, "items"),
            ({"vendorName": " "}, "vendor_name"),
            ({"invoiceNumber": None}, "invoice_number"),
            ({"taxAmount": "-1"}, "tax_amount"),
            ({"confidenceScore": 1.5}, "confidence_score"),
        ],
    )
    def test_invalid_drafts(self, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            InvoiceDraft.from_mapping(self._raw(**overrides))
        assert exc_info.value.field == field

    def test_negative_unit_price_rejected(self):
        with pytest.raises(ValidationError):
            InvoiceLineSpec("x", 1, Decimal("-1"))

    def test_drafts_are_frozen(self):
        draft = InvoiceDraft.from_mapping(self._raw())
        with pytest.raises(FrozenInstanceError):
            draft.invoice_number = "INV-002"


class TestDateRange:

    def test_inclusive_bounds(self):
        window = DateRange(date(2025, 1, 1), date(2025, 1, 31))
        assert window.contains(date(2025, 1, 1))
        assert window.contains(date(2025, 1, 31))
        assert not window.contains(date(2025, 2, 1))

    def test_single_day_window(self):
        window = DateRange.from_raw({"start": "2025-03-01", "end": "2025-03-01"})
        assert window.start == window.end

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            DateRange.from_raw({"start": "2025-03-02", "end": "2025-03-01"})
        assert exc_info.value.field == "date_range"
