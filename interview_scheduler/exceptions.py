"""Scheduling error taxonomy.

Route handlers never catch these individually: ``main.create_app`` registers
one exception handler per class and turns them into JSON error responses.
"""


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""

    status_code = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.__class__.__name__


class CollaboratorUnavailable(SchedulingError):
    """An external collaborator (calendar API, interview store) could not be reached."""

    status_code = 503

    def __init__(self, collaborator: str, message: str = "") -> None:
        super().__init__(message or f"{collaborator} unavailable")
        self.collaborator = collaborator


class LLMUnavailable(CollaboratorUnavailable):
    """The language model timed out or returned an API error."""

    def __init__(self, message: str = "") -> None:
        super().__init__(
            "llm",
            message or "The scheduling assistant is not responding right now. Please try again.",
        )


class GenerationCancelled(SchedulingError):
    """The caller cancelled a slot proposal while the model was still generating."""

    status_code = 499


class LLMMalformedResponse(SchedulingError):
    """The model reply did not contain a parseable JSON object."""

    status_code = 502


class NoMatchingApplication(SchedulingError):
    """The confirmed slot cannot be attributed to any known job application."""

    status_code = 422


class InvalidTransition(SchedulingError):
    """The requested lifecycle operation is not allowed from the current state."""

    status_code = 409

    def __init__(self, operation: str, current: str, expected: str) -> None:
        super().__init__(f"Cannot {operation}: status is '{current}', expected '{expected}'")
        self.operation = operation
        self.current = current
        self.expected = expected


class PersistenceConflict(SchedulingError):
    """A concurrent write changed the record; re-fetch and retry."""

    status_code = 409


class InterviewNotFound(SchedulingError):
    """No interview exists with the given id."""

    status_code = 404


class InvalidDateTime(SchedulingError, ValueError):
    """A date or time string could not be parsed."""

    status_code = 400


class SessionNotFound(SchedulingError):
    """No conversation session exists with the given id (it may have expired)."""

    status_code = 404
