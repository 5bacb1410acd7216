"""
Custom exceptions for the checkout client.
"""
from typing import List, Optional


class CheckoutException(Exception):
    """Base exception for cart and checkout operations"""
    pass


class TransportError(CheckoutException):
    """Raised when the backend cannot be reached or times out"""
    pass


class AuthError(CheckoutException):
    """Raised when the API credential is rejected or the session may not check out"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(CheckoutException):
    """Raised when local validation blocks a submission"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MissingFieldsError(ValidationError):
    """Raised when required delivery fields are empty"""
    def __init__(self, fields: List[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required delivery fields: {', '.join(self.fields)}")


class EmptyCartError(ValidationError):
    """Raised when an order is attempted with no cart rows"""
    def __init__(self):
        super().__init__("Cannot place an order with an empty cart")


class ServerError(CheckoutException):
    """Raised when the backend answers with a non-success status"""
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Backend returned {status_code}: {message}")


class SubmitError(ServerError):
    """Raised when the backend refuses an order"""
    pass


class ParseError(CheckoutException):
    """Raised when a backend response has an unexpected shape"""
    pass


class RowNotFoundError(CheckoutException):
    """Raised when a cart row is not present in the local cart"""
    def __init__(self, row_id: str):
        self.row_id = row_id
        super().__init__(f"Row not found in cart: {row_id}")


class DeviceStoreError(CheckoutException):
    """Raised when the device identity store is unavailable"""
    pass


class DeviceIdentityUnavailableError(ValidationError):
    """Raised when a device-scoped call is attempted without a device identity"""
    def __init__(self):
        super().__init__("Device identity unavailable")
