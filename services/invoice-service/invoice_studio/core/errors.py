"""
Error taxonomy for the invoice service.

Every failure that reaches a caller is one of:

- ``ValidationError``  field-level and user-correctable, never fatal
- ``NotFoundError``    a record id that does not resolve
- ``DependencyError``  the record store or blob store failed
- ``ExportError``      document rasterization or layout failed

Anything else is caught at the operation boundary, logged with its context and
re-raised as one of the kinds above. Raw exception text is logged, not shown.
"""

from contextlib import contextmanager
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterator, List, Optional, Type

from .logging import get_logger

logger = get_logger("errors")


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class InvoiceServiceError(Exception):
    """Base class for all errors surfaced to users of the service."""

    code = "INVOICE_SERVICE_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None, context: Optional[str] = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.context = context
        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        return {"success": False, "code": self.code, "message": self.message}


class ValidationError(InvoiceServiceError):
    code = "VALIDATION_ERROR"
    status_code = 422
    default_message = "Validation failed"

    def __init__(self, errors: List[FieldError], message: Optional[str] = None, **kwargs: Any):
        self.errors = list(errors)
        super().__init__(message, **kwargs)

    @property
    def fields(self) -> List[str]:
        return [error.field for error in self.errors]

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["errors"] = [error.to_dict() for error in self.errors]
        return body


class NotFoundError(InvoiceServiceError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "The requested record could not be found"


class DependencyError(InvoiceServiceError):
    code = "DEPENDENCY_ERROR"
    status_code = 503
    default_message = "The service is temporarily unavailable. Your changes were not lost, please try again."


class ExportError(InvoiceServiceError):
    code = "EXPORT_ERROR"
    status_code = 500
    default_message = "Failed to generate the document. Please try again."

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None, **kwargs: Any):
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message, **kwargs)


class UnknownCurrencyError(InvoiceServiceError):
    code = "UNKNOWN_CURRENCY"
    status_code = 404
    default_message = "Unknown currency code"

    def __init__(self, currency_code: str):
        self.currency_code = currency_code
        super().__init__(f"Unknown currency code: {currency_code}")


@contextmanager
def operation_boundary(
    context: str,
    fallback: Type[InvoiceServiceError] = DependencyError,
    **log_context: Any,
) -> Iterator[None]:
    """Normalize unexpected exceptions raised inside an operation.

    Errors that already belong to the taxonomy pass through untouched.
    """
    try:
        yield
    except InvoiceServiceError:
        raise
    except Exception as exc:
        logger.error(
            f"[{context}] {type(exc).__name__}: {exc}",
            extra={"operation": context, **log_context},
            exc_info=True,
        )
        raise fallback(context=context) from exc
