class ServiceError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Bad input; raised before any state change."""


class InvalidTransition(ServiceError):
    """Illegal booking state change."""


class NotFound(ServiceError):
    """Unknown booking, discount, vehicle, slot or commission id."""


class OverlapConflict(ServiceError):
    """An availability slot collides with a slot of a different status."""

    def __init__(self, message, conflicting_slot=None):
        super().__init__(message)
        self.conflicting_slot = conflicting_slot


class PartialRecalculationFailure(ServiceError):
    """
    One booking could not be re-priced during a recalculation sweep.
    Collected on the sweep result, never raised to the caller.
    """

    def __init__(self, message, booking_id=None):
        super().__init__(message)
        self.booking_id = booking_id
