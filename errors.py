"""Booking error taxonomy.

Each stage of the booking pipeline raises one of these. Fatal errors stop
the submission and become the result returned to the mini-app; non-fatal
ones are logged and reported as warnings on a successful result.
"""

from typing import Optional


class BookingError(Exception):
    code = "BookingError"
    fatal = True
    default_message = "Booking failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(BookingError):
    code = "ValidationFailed"
    default_message = "Please fill in all fields"


class AuthRequired(BookingError):
    code = "AuthRequired"
    default_message = "Please log in to LINE first"

    def __init__(self, login_url: Optional[str] = None, message: Optional[str] = None):
        super().__init__(message)
        self.login_url = login_url


class ProfileUnavailable(BookingError):
    code = "ProfileUnavailable"
    fatal = False
    default_message = "Could not read the LINE profile"


class AvailabilityCheckFailed(BookingError):
    code = "AvailabilityCheckFailed"
    default_message = "Could not check the time slot"


class SlotUnavailable(BookingError):
    code = "SlotUnavailable"
    default_message = "This time is already booked, please pick another time"


class CommitFailed(BookingError):
    code = "CommitFailed"
    default_message = "Could not save the booking"


class MirrorFailed(BookingError):
    code = "MirrorFailed"
    fatal = False
    default_message = "Could not add the booking to the calendar"


class MessagingSendFailed(BookingError):
    code = "MessagingSendFailed"
    fatal = False
    default_message = "Could not send the LINE confirmation"


class SubmissionInProgress(BookingError):
    code = "SubmissionInProgress"
    default_message = "A booking is already being submitted"
