"""Error taxonomy shared by the stores, the booking workflow and the API.

Every error carries the HTTP status it maps to and a message that is safe
to hand to clients. Storage driver details never go into ``message``; they
are chained via ``__cause__`` and only logged server-side.
"""


class BookingError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidInput(BookingError):
    status_code = 400
    message = "Invalid input"


class NotFound(BookingError):
    status_code = 404
    message = "Not found"


class CapacityExceeded(BookingError):
    status_code = 400
    message = "Some lessons are fully booked"


class StorageUnavailable(BookingError):
    status_code = 500
    message = "Storage unavailable"


class ConfigError(RuntimeError):
    pass
