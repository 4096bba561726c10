"""
Exception hierarchy for the solver.

Every error carries a ``kind`` string which is what ends up in an order's
error detail when an operation fails.
"""

from typing import Optional


class SolverError(Exception):
    """
    Base exception for all solver errors.

    Catch this to handle any failure raised by the orchestration engine.
    """

    kind = "SolverError"


class ValidationError(SolverError):
    """
    Raised when a submitted order is malformed or already expired.

    Attributes:
        field: Name of the offending field
        message: Human readable reason
    """

    kind = "ValidationError"

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Invalid {field}: {message}")


class EncodingError(SolverError):
    """Raised when an order cannot be encoded into contract call data."""

    kind = "EncodingError"


class ExecutionError(SolverError):
    """
    Raised when an execution backend rejects or fails a transaction.

    Attributes:
        message: Error message
        status: Optional HTTP status returned by a relayer
        response_data: Optional raw response body
    """

    kind = "ExecutionError"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        self.message = message
        self.status = status
        self.response_data = response_data
        if status is not None:
            super().__init__(f"Execution error {status}: {message}")
        else:
            super().__init__(f"Execution error: {message}")


class OperationTimeoutError(SolverError):
    """Raised when an asynchronous execution does not complete in time."""

    kind = "TimeoutError"

    def __init__(self, request_id: str, timeout_seconds: float):
        self.request_id = request_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Request {request_id} did not complete within {timeout_seconds}s"
        )


class NotFoundError(SolverError):
    """Raised when an order id is unknown to the store."""

    kind = "NotFoundError"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class ConflictError(SolverError):
    """
    Raised when a transition is attempted from the wrong state.

    Attributes:
        order_id: Order the transition targeted
        current: Status the order actually had
        expected: Status the caller expected
    """

    kind = "ConflictError"

    def __init__(self, order_id: str, current: str, expected: str, message: Optional[str] = None):
        self.order_id = order_id
        self.current = current
        self.expected = expected
        super().__init__(
            message
            or f"Order {order_id} is {current}, expected {expected}"
        )


class PersistenceError(SolverError):
    """Raised when a snapshot cannot be written."""

    kind = "PersistenceError"


class ConfigurationError(SolverError):
    """Raised for missing or invalid configuration."""

    kind = "ConfigurationError"
