"""
Error taxonomy for inventory operations.

Errors carry machine-readable context only; turning them into user-facing
text is left to the caller.
"""

from typing import Optional


class InventoryError(Exception):
    """Base class for all errors raised by the asset store."""


class ValidationError(InventoryError):
    """Raised for malformed or out-of-range input."""
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(InventoryError):
    """Raised when an operation targets an asset that does not exist."""
    def __init__(self, asset_id: str):
        super().__init__(f"Asset not found: {asset_id}")
        self.asset_id = asset_id


class AuthorizationError(InventoryError):
    """Raised when a mutation is attempted without an acting identity."""
