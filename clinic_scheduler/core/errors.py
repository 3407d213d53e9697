"""Error taxonomy for the scheduling engine.

Every error carries a short machine-readable ``error`` code and the HTTP status
the API layer answers with. Services raise these; ``main.py`` renders them.
"""


class SchedulingError(Exception):
    error = "scheduling_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgumentError(SchedulingError):
    """A required identifier (date, doctor or patient) is missing."""

    error = "invalid_argument"
    status_code = 400


class NotFoundError(SchedulingError):
    error = "not_found"
    status_code = 404


class UnavailableError(SchedulingError):
    """The store could not be reached. Retryable by the caller, never retried here."""

    error = "unavailable"
    status_code = 503


class ValidationError(SchedulingError):
    error = "validation"
    status_code = 422


class ConflictError(SchedulingError):
    """The patient or doctor is already booked at the requested slot.

    ``party`` is ``"patient"``, ``"doctor"`` or ``None`` when only the unique
    index caught the collision and the winning row is not visible.
    """

    status_code = 409

    def __init__(self, party: str | None, appointment_id: int | None = None) -> None:
        if party == "patient":
            message = "The patient already has an appointment at this time"
        elif party == "doctor":
            message = "The doctor already has an appointment at this time"
        else:
            message = "This slot was just taken, please choose another one"
        super().__init__(message)
        self.party = party
        self.appointment_id = appointment_id

    @property
    def error(self) -> str:  # type: ignore[override]
        return f"{self.party}_conflict" if self.party else "slot_taken"
