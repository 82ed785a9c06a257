"""Progress error hierarchy."""


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class AlreadyEnrolledError(ProgressError):
    """User is already enrolled in the course."""

    def __init__(self, message: str = "Already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class InvalidProgressTransitionError(ProgressError):
    """Requested status would move a lesson back to an earlier state."""

    def __init__(self, message: str = "A started lesson cannot return to NOT_STARTED"):
        super().__init__(message, "invalid_progress_transition")
