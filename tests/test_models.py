"""
Import Data Model Tests

Tests for Transaction, Category, ColumnMapping, UploadedFile and Confidence.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_import.models import (
    Category,
    ColumnMapping,
    Confidence,
    Transaction,
    UploadedFile,
)


class TestTransaction:
    """Tests for the canonical transaction record."""

    def test_derived_fields(self):
        txn = Transaction(date=date(2024, 1, 5), description="  Starbucks #123 ", amount_out="4.75")

        assert txn.match_field == "STARBUCKS #123"
        assert txn.amount_out == Decimal("4.75")
        assert txn.amount_in == Decimal("0")
        assert txn.net_amount == Decimal("-4.75")
        assert txn.is_debit

    def test_datetime_becomes_date(self):
        txn = Transaction(date=datetime(2024, 1, 5, 23, 59), description="X", amount_in=1)

        assert txn.date == date(2024, 1, 5)
        assert txn.posted_at == datetime(2024, 1, 5, 12, 0)

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            Transaction(date=date(2024, 1, 5), description="X", amount_out=Decimal("-1"))

    def test_unique_ids(self):
        first = Transaction(date=date(2024, 1, 5), description="X", amount_out=1)
        second = Transaction(date=date(2024, 1, 5), description="X", amount_out=1)

        assert first.id != second.id

    def test_to_dict(self):
        data = Transaction(date=date(2024, 1, 5), description="X", amount_in="10.50").to_dict()

        assert data["date"] == "2024-01-05"
        assert data["net_amount"] == 10.5


class TestCategory:
    """Tests for the category shape."""

    def test_from_dict_camel_case(self):
        category = Category.from_dict(
            {"uuid": "c-1", "name": "Food", "keywords": ["EATS"], "isSystem": True}
        )

        assert category.id == "c-1"
        assert category.keywords == ("EATS",)
        assert category.is_system


class TestColumnMapping:
    """Tests for column mapping validation."""

    def test_from_dict_camel_case(self):
        mapping = ColumnMapping.from_dict({"date": 0, "description": 1, "amountOut": 2})

        assert mapping.amount_out == 2
        assert mapping.columns() == {"date": 0, "description": 1, "amount_out": 2}

    def test_needs_an_amount_column(self):
        with pytest.raises(ValueError, match="amount"):
            ColumnMapping(date=0, description=1)

    def test_names_need_headers(self):
        with pytest.raises(ValueError, match="headers"):
            ColumnMapping(date="Date", description=1, amount=2)

    def test_unknown_date_format(self):
        with pytest.raises(ValueError):
            ColumnMapping(date=0, description=1, amount=2, date_format="YMD")

    def test_unknown_field(self):
        with pytest.raises(ValueError, match="Unknown column mapping field"):
            ColumnMapping.from_dict({"date": 0, "description": 1, "amount": 2, "memo": 3})

    def test_to_dict(self):
        mapping = ColumnMapping(date=0, description=1, amount=2, date_format="DMY")

        assert mapping.to_dict() == {
            "date": 0, "description": 1, "amount": 2, "has_headers": False, "date_format": "DMY",
        }


class TestUploadedFile:
    """Tests for the uploaded file wrapper."""

    def test_from_path(self, tmp_path):
        path = tmp_path / "CIBC.CSV"
        path.write_bytes(b"2024-01-05,X,1,\n")
        file = UploadedFile.from_path(path)

        assert file.name == "CIBC.CSV"
        assert file.extension == ".csv"
        assert not file.is_spreadsheet
        assert file.needs_bank_selection

    def test_needs_bank_selection(self):
        file = UploadedFile(name="x.xlsx", content=b"", bank_id="AMEX")

        assert file.is_spreadsheet
        assert not file.needs_bank_selection

        file.errors.append("bad")
        assert file.needs_bank_selection


class TestConfidence:
    """Tests for ratio thresholds and ordering."""

    @pytest.mark.parametrize("ratio,expected", [
        (1.0, Confidence.HIGH),
        (0.8, Confidence.HIGH),
        (0.79, Confidence.MEDIUM),
        (0.5, Confidence.MEDIUM),
        (0.2, Confidence.LOW),
        (0.19, Confidence.NONE),
        (0.0, Confidence.NONE),
    ])
    def test_from_ratio(self, ratio, expected):
        assert Confidence.from_ratio(ratio) is expected

    def test_ranks_ordered(self):
        ranks = [c.rank for c in (Confidence.NONE, Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH)]

        assert ranks == sorted(ranks)
