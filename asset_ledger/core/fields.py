"""
Field declarations and diff helpers.

Every mutable asset field is declared here with the function that coerces a
proposed value and the function that renders it for comparison. Diffs are
computed from this table, never by iterating over arbitrary object
attributes.
"""

from dataclasses import dataclass
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import ValidationError
from asset_ledger.storage.models import Asset, AssetStatus, FieldDelta


REQUIRED_FIELDS = ("name", "type", "responsible", "location")


def coerce_required_text(value: Any, field: str) -> str:
    """Return ``value`` as stripped text, rejecting missing or blank values."""
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"'{field}' is required", field=field)
    return text


def coerce_optional_text(value: Any, field: str) -> Optional[str]:
    """Return stripped text, or None for missing and blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_cost(value: Any, field: str = "cost") -> Decimal:
    """Convert ``value`` to a non-negative Decimal.

    Floats go through ``str`` first so 0.1 stays 0.1 instead of its binary
    expansion.

    Raises:
        ValidationError: If the value is not a finite number, is negative or
            has an exponent the default decimal context cannot represent
    """
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be a number", field=field)
    try:
        cost = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"'{field}' must be a number", field=field)

    if not cost.is_finite():
        raise ValidationError(f"'{field}' must be a finite number", field=field)
    if cost < 0:
        raise ValidationError(f"'{field}' must be >= 0", field=field)
    try:
        cost.normalize()
    except DecimalException:
        raise ValidationError(f"'{field}' is out of range", field=field)
    if cost == 0:
        return Decimal(0)
    return cost


def coerce_status(value: Any, field: str = "status") -> AssetStatus:
    """Convert ``value`` to an AssetStatus.

    Raises:
        ValidationError: If the value is not one of the defined states
    """
    if isinstance(value, AssetStatus):
        return value
    try:
        return AssetStatus(str(value).strip().lower())
    except ValueError:
        valid_statuses = [status.value for status in AssetStatus]
        raise ValidationError(
            f"'{field}' must be one of: {valid_statuses}", field=field
        )


def stringify_text(value: Optional[str]) -> str:
    return "" if value is None else str(value)


def format_decimal(value: Decimal) -> str:
    """Render a Decimal without exponent or trailing zeros (1000.00 -> '1000')."""
    return format(value.normalize(), "f")


def stringify_status(value: AssetStatus) -> str:
    return value.value


@dataclass(frozen=True)
class FieldSpec:
    """How one mutable field is coerced and compared."""
    name: str
    coerce: Callable[[Any, str], Any]
    stringify: Callable[[Any], str]


MUTABLE_FIELDS: Dict[str, FieldSpec] = {
    spec.name: spec for spec in (
        FieldSpec("name", coerce_required_text, stringify_text),
        FieldSpec("type", coerce_required_text, stringify_text),
        FieldSpec("subtype", coerce_optional_text, stringify_text),
        FieldSpec("description", coerce_optional_text, stringify_text),
        FieldSpec("serial_number", coerce_optional_text, stringify_text),
        FieldSpec("responsible", coerce_required_text, stringify_text),
        FieldSpec("location", coerce_required_text, stringify_text),
        FieldSpec("cost", coerce_cost, format_decimal),
        FieldSpec("status", coerce_status, stringify_status),
    )
}


def coerce_changes(partial: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate and coerce a partial update.

    All keys are checked before anything is returned, so one bad value
    rejects the whole update.

    Args:
        partial: Proposed field values keyed by field name

    Returns:
        Coerced values, in declared field order

    Raises:
        ValidationError: For unknown or immutable keys and invalid values
    """
    unknown = sorted(set(partial) - set(MUTABLE_FIELDS))
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {unknown}", field=unknown[0]
        )

    return {
        name: spec.coerce(partial[name], name)
        for name, spec in MUTABLE_FIELDS.items()
        if name in partial
    }


def diff_fields(asset: Asset, changes: Mapping[str, Any]) -> List[FieldDelta]:
    """Compute stringified deltas between ``asset`` and coerced ``changes``.

    Fields whose rendered values are equal are left out.
    """
    deltas = []
    for name, spec in MUTABLE_FIELDS.items():
        if name not in changes:
            continue
        old_text = spec.stringify(getattr(asset, name))
        new_text = spec.stringify(changes[name])
        if old_text != new_text:
            deltas.append(FieldDelta(field=name, old_value=old_text, new_value=new_text))
    return deltas


def cost_delta(old_cost: Decimal, new_cost: Decimal) -> Optional[FieldDelta]:
    """Numeric cost delta, or None when both amounts are equal."""
    if old_cost == new_cost:
        return None
    return FieldDelta(field="cost", old_value=old_cost, new_value=new_cost)
