from typing import Dict, List, Optional


class LoanTrackerError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(LoanTrackerError):
    """Input is missing, malformed or out of range.

    ``details`` lists every violated constraint as ``{"field", "message"}``.
    """

    status_code = 400
    message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[List[Dict[str, str]]] = None,
    ):
        super().__init__(message)
        self.details = details or []

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.details:
            body["details"] = self.details
        return body


# the calculator's name for the same failure
InvalidInput = ValidationError


class Unauthorized(LoanTrackerError):
    status_code = 401
    message = "Unauthorized"


class NotFound(LoanTrackerError):
    status_code = 404
    message = "Not found"


class Conflict(LoanTrackerError):
    status_code = 409
    message = "Conflict"


class InternalError(LoanTrackerError):
    pass
