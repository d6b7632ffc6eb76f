"""
Typed Exception Hierarchy for the Bill Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (an API layer, a background job, a test) need to react
to failures by kind, not by message text:

  - A bad recurrence rule is the user's problem: show it on the form.
  - An unknown series id is a 404.
  - A concurrent regeneration is transient: retry the request.

Every exception carries a CODE class attribute (machine-readable, API-safe)
and its context as attributes (not only inside the message string).

    try:
        service.update_series(series_id, patch)
    except ConflictError as e:
        if e.retryable:
            retry_later(e.series_id)
    except ConfigurationError as e:
        return {"error": e.code, "field": e.field}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillEngineError (base)
    |
    +-- ConfigurationError
    |   +-- InvalidRecurrenceError
    |   +-- InvalidCategoryAssignmentError
    |   +-- InvalidTemplateError
    |   +-- InvalidWindowError
    |
    +-- NotFoundError
    |   +-- SeriesNotFoundError
    |   +-- InstanceNotFoundError
    |   +-- TransactionNotFoundError
    |
    +-- ConflictError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|-----------------------------------
Configuration   | INVALID_RECURRENCE           | CUSTOM without a positive interval,
                |                              | or an interval on another type
                | INVALID_CATEGORY_ASSIGNMENT  | No category and no usable splits,
                |                              | or splits not summing to the amount
                | INVALID_TEMPLATE             | Missing name, non-positive amount
                | INVALID_WINDOW               | Negative nearby-transaction window
----------------|------------------------------|-----------------------------------
Not found       | SERIES_NOT_FOUND             | Unknown series id
                | INSTANCE_NOT_FOUND           | Unknown instance id
                | TRANSACTION_NOT_FOUND        | Unknown transaction id
----------------|------------------------------|-----------------------------------
Conflict        | CONFLICT                     | Concurrent regeneration of the
                |                              | same series (retryable)
----------------|------------------------------|-----------------------------------
Immutability    | IMMUTABILITY_VIOLATION       | Changing or deleting a paid
                |                              | instance

===============================================================================
"""


class BillEngineError(Exception):
    """
    Base exception for all bill engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "BILL_ENGINE_ERROR"


# Configuration (caller input) errors


class ConfigurationError(BillEngineError):
    """A series template or recurrence rule is not well formed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidRecurrenceError(ConfigurationError):
    """Recurrence type and custom interval do not agree."""

    code: str = "INVALID_RECURRENCE"

    def __init__(self, recurrence_type: str, custom_interval_days: int | None, reason: str):
        self.recurrence_type = recurrence_type
        self.custom_interval_days = custom_interval_days
        super().__init__(
            f"Invalid recurrence {recurrence_type} "
            f"(custom_interval_days={custom_interval_days}): {reason}",
            field="custom_interval_days",
        )


class InvalidCategoryAssignmentError(ConfigurationError):
    """Neither a category nor a valid split breakdown was provided."""

    code: str = "INVALID_CATEGORY_ASSIGNMENT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid category assignment: {reason}", field="category_id")


class InvalidTemplateError(ConfigurationError):
    """A template field holds a value the engine cannot accept."""

    code: str = "INVALID_TEMPLATE"

    def __init__(self, field: str, reason: str):
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}", field=field)


class InvalidWindowError(ConfigurationError):
    """A nearby-transaction window is negative."""

    code: str = "INVALID_WINDOW"

    def __init__(self, window_days: int):
        self.window_days = window_days
        super().__init__(
            f"Invalid nearby window {window_days}: cannot be negative",
            field="window_days",
        )


# Lookup errors


class NotFoundError(BillEngineError):
    """Base exception for unknown ids."""

    code: str = "NOT_FOUND"


class SeriesNotFoundError(NotFoundError):
    """Recurring bill series with given ID was not found."""

    code: str = "SERIES_NOT_FOUND"

    def __init__(self, series_id: str):
        self.series_id = series_id
        super().__init__(f"Bill series not found: {series_id}")


class InstanceNotFoundError(NotFoundError):
    """Bill instance with given ID was not found."""

    code: str = "INSTANCE_NOT_FOUND"

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"Bill instance not found: {instance_id}")


class TransactionNotFoundError(NotFoundError):
    """Transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


# Concurrency errors


class ConflictError(BillEngineError):
    """
    Concurrent regeneration of the same series was detected.

    The whole reconciliation was rolled back; the caller may retry.
    """

    code: str = "CONFLICT"
    retryable: bool = True

    def __init__(self, series_id: str, reason: str):
        self.series_id = series_id
        self.reason = reason
        super().__init__(
            f"Conflicting update on bill series {series_id}: {reason}"
        )


# Immutability errors


class ImmutabilityViolationError(BillEngineError):
    """Attempted to modify or delete a paid bill instance."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
