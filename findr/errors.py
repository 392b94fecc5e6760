from typing import Any, Dict, List, Optional


class FindrError(Exception):
    """Base class for every error raised by findr."""


class ValidationError(FindrError):
    """User-correctable input problem. Never leaves the form/request that produced it."""


class ReportValidationError(ValidationError):
    def __init__(self, violations: Dict[str, Any]):
        # field name -> Violation(code, message)
        self.violations = violations
        super().__init__("; ".join(f"{field}: {v.message}" for field, v in violations.items()))

    @property
    def field_errors(self) -> Dict[str, str]:
        return {field: v.message for field, v in self.violations.items()}


class FutureDateError(ValidationError):
    def __init__(self, message: str = "Date and time cannot be in the future"):
        super().__init__(message)


class ImageValidationError(ValidationError):
    pass


class PermissionDeniedError(FindrError):
    pass


class ReportNotFoundError(FindrError):
    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report {report_id} not found")


class ReportDecodeError(FindrError):
    def __init__(self, report_id: Optional[str], problems: List[str]):
        self.report_id = report_id
        self.problems = problems
        super().__init__(f"Cannot decode report {report_id}: " + ", ".join(problems))


class AuthError(FindrError):
    # codes follow the identity provider's: email-already-in-use, user-not-found, ...
    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(message)


class CollaboratorError(FindrError):
    """Opaque failure from an external service, relayed as-is."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f"{operation} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
