"""Domain errors raised by services and translated to HTTP by the endpoints."""


class PaymentCalendarError(Exception):
    """Base class for payment calendar errors."""
    pass


class NotFoundError(PaymentCalendarError):
    """A rule, obligation or payment could not be found."""

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class ConflictError(PaymentCalendarError):
    """The write would break a uniqueness rule (e.g. a second obligation for the same date)."""
    pass


class InvalidTransitionError(PaymentCalendarError):
    """An obligation status change that is not allowed from its current status."""

    def __init__(self, action: str, current_status: str):
        self.action = action
        self.current_status = current_status
        super().__init__(f"Cannot {action} an obligation with status '{current_status}'")


class PaymentValidationError(PaymentCalendarError):
    """Invalid input: non-positive amounts, missing notes, unparsable dates."""
    pass
