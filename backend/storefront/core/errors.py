# storefront/core/errors.py
"""
Cart error taxonomy.

Services raise these; `storefront.main` turns them into the
`{"success": false, "message": ...}` envelope with the carried status code.
"""
from fastapi import status


class CartError(Exception):
    """Base class for rejections the caller is expected to read and act on."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CartValidationError(CartError):
    """Malformed client input: missing id, bad quantity, unknown size."""


class CartNotFoundError(CartError):
    """Product or cart does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class CartRuleError(CartError):
    """Business rule violation: unpublished product or not enough stock."""
