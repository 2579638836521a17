"""Typed failures raised by the order core.

Each error carries a stable ``code`` that the public operations put into
their ``{"success": False}`` results and the HTTP layer maps to a status.
"""


class OrderError(Exception):
    code = "order_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderError):
    code = "validation_error"


class EmptyCartError(ValidationError):
    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class NotFoundError(OrderError):
    code = "not_found"


class PersistenceError(OrderError):
    code = "persistence_error"


class SchemaMissingError(PersistenceError):
    """The storage is reachable but a required table does not exist yet."""
