"""
Unit tests for field coercion and diffing.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from asset_ledger.core.errors import ValidationError
from asset_ledger.core.fields import (
    MUTABLE_FIELDS,
    coerce_changes,
    coerce_cost,
    coerce_status,
    cost_delta,
    diff_fields,
    format_decimal,
)
from asset_ledger.storage.models import Asset, AssetStatus, FieldDelta

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_asset(**overrides):
    values = dict(
        id="a1",
        name="Laptop",
        type="Hardware",
        responsible="Juan",
        location="Office A",
        cost=Decimal("1000"),
        status=AssetStatus.ACTIVE,
        created_at=NOW,
        updated_at=NOW,
        created_by="1",
    )
    values.update(overrides)
    return Asset(**values)


class TestCostCoercion:
    """Test cost parsing."""

    @pytest.mark.parametrize("value, expected", [
        (0, Decimal("0")),
        (1000, Decimal("1000")),
        (0.1, Decimal("0.1")),
        ("249.99", Decimal("249.99")),
        (Decimal("5.50"), Decimal("5.50")),
        ("-0", Decimal("0")),
    ])
    def test_valid_costs(self, value, expected):
        """Numbers and numeric strings become Decimals."""
        assert coerce_cost(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", None, True, "NaN", "Infinity", -5])
    def test_invalid_costs(self, value):
        """Non-numeric, non-finite and negative costs are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            coerce_cost(value)
        assert exc_info.value.field == "cost"

    @pytest.mark.parametrize("value", ["1e1000000", "1e50000000", Decimal("9E+999999999")])
    def test_out_of_range_costs(self, value):
        """Amounts that cannot be rendered are rejected up front."""
        with pytest.raises(ValidationError, match="out of range") as exc_info:
            coerce_cost(value)
        assert exc_info.value.field == "cost"

    def test_format_decimal_drops_exponent_and_trailing_zeros(self):
        """Equal amounts render identically."""
        assert format_decimal(Decimal("1000.00")) == "1000"
        assert format_decimal(Decimal("1E+3")) == "1000"
        assert format_decimal(Decimal("950.50")) == "950.5"


class TestStatusCoercion:
    """Test status parsing."""

    def test_status_is_case_insensitive(self):
        """Status strings are normalised before lookup."""
        assert coerce_status(" Inactive ") == AssetStatus.INACTIVE
        assert coerce_status(AssetStatus.DECOMMISSIONED) == AssetStatus.DECOMMISSIONED

    def test_unknown_status(self):
        """Values outside the enum fail."""
        with pytest.raises(ValidationError):
            coerce_status("deleted")


class TestDiff:
    """Test delta computation."""

    def test_declared_field_order(self):
        """Deltas follow the declared field order, not the input order."""
        asset = make_asset()
        changes = coerce_changes({"status": "inactive", "name": "Desktop"})
        assert diff_fields(asset, changes) == [
            FieldDelta("name", "Laptop", "Desktop"),
            FieldDelta("status", "active", "inactive"),
        ]

    def test_equal_after_stringification(self):
        """Values with the same rendering are not changes."""
        asset = make_asset(serial_number="123")
        changes = coerce_changes({"serial_number": 123, "cost": "1000.0"})
        assert diff_fields(asset, changes) == []

    def test_unknown_keys_rejected(self):
        """Only declared mutable fields may be changed."""
        with pytest.raises(ValidationError, match="cannot be updated"):
            coerce_changes({"created_by": "2"})

    def test_mutable_fields_exclude_identity_and_audit(self):
        """Identifier, creator and timestamps are not mutable."""
        assert not {"id", "created_by", "created_at", "updated_at"} & set(MUTABLE_FIELDS)

    def test_cost_delta(self):
        """Numeric cost deltas keep Decimal values."""
        assert cost_delta(Decimal("10"), Decimal("10.00")) is None
        assert cost_delta(Decimal("10"), Decimal("12")) == FieldDelta(
            "cost", Decimal("10"), Decimal("12")
        )
