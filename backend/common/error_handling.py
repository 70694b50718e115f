"""
Error Handling System for ExamForge

This module provides the error handling framework for the attempt engine:
1. Custom exception hierarchy for the attempt lifecycle error taxonomy
2. Retry mechanisms with backoff for optimistic-lock conflicts and transient failures
3. Structured error logging and reporting
4. Error response generation for APIs
"""

import time
import logging
import traceback
import asyncio
import random
import functools
import json
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar, Union, cast
from datetime import datetime
from pydantic import BaseModel, Field, validator

# Type variables
T = TypeVar('T')
F = TypeVar('F', bound=Callable)

# Configure logging
logger = logging.getLogger(__name__)

class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

class ErrorCode(Enum):
    """Standard error codes for ExamForge"""
    # General errors
    UNKNOWN_ERROR = "unknown_error"
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND_ERROR = "not_found_error"

    # Lookup errors
    ASSESSMENT_NOT_FOUND = "assessment_not_found"
    QUESTION_NOT_FOUND = "question_not_found"
    ATTEMPT_NOT_FOUND = "attempt_not_found"
    USER_NOT_FOUND = "user_not_found"

    # Attempt lifecycle errors
    INELIGIBLE = "ineligible"
    INVALID_STATE = "invalid_state"
    ATTEMPT_EXPIRED = "attempt_expired"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    INTEGRITY_GAP = "integrity_gap"

    # Database errors
    DATABASE_ERROR = "database_error"

class ErrorInfo(BaseModel):
    """Structured information about an error"""
    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    exception_message: Optional[str] = None
    stack_trace: Optional[List[str]] = None
    context: Optional[Dict[str, Any]] = None

    class Config:
        use_enum_values = True

    @validator('stack_trace', pre=True, always=False)
    def validate_stack_trace(cls, v):
        """Format stack trace if it's a string"""
        if isinstance(v, str):
            return v.splitlines()
        return v

class PlatformError(Exception):
    """Base exception class for all ExamForge errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.severity = severity
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_error_info(self, include_stack_trace: bool = False) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        stack_trace = None
        if include_stack_trace:
            stack_trace = traceback.format_exc().splitlines()

        # Include cause information in details
        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        return ErrorInfo(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity,
            details=details,
            exception_type=type(self).__name__,
            exception_message=str(self),
            stack_trace=stack_trace,
            context=self.context
        )

    def to_dict(self, include_stack_trace: bool = False) -> Dict[str, Any]:
        """Convert the exception to a dictionary"""
        return self.to_error_info(include_stack_trace).dict()

    def to_json(self, include_stack_trace: bool = False) -> str:
        """Convert the exception to a JSON string"""
        return json.dumps(self.to_dict(include_stack_trace), default=str)

    def __str__(self) -> str:
        base_str = f"{self.code.value}: {self.message}"
        if self.details:
            base_str += f" (details: {self.details})"
        if self.cause:
            base_str += f" caused by {type(self.cause).__name__}: {str(self.cause)}"
        return base_str

# Specific exception classes for different error types

class InvalidRequestError(PlatformError):
    """Error raised for malformed input such as a bad question index or a missing answer"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.INVALID_REQUEST,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause,
            context=context
        )

class NotFoundError(PlatformError):
    """Error raised when a requested resource is not found"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NOT_FOUND_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause,
            context=context
        )

class AssessmentNotFoundError(NotFoundError):
    """Error raised when an assessment is not found"""

    def __init__(self, assessment_id: str, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details["assessment_id"] = assessment_id
        super().__init__(
            message=f"Assessment with ID {assessment_id} not found",
            code=ErrorCode.ASSESSMENT_NOT_FOUND,
            details=details
        )

class QuestionNotFoundError(NotFoundError):
    """Error raised when a question is not found"""

    def __init__(self, question_id: str, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details["question_id"] = question_id
        super().__init__(
            message=f"Question with ID {question_id} not found",
            code=ErrorCode.QUESTION_NOT_FOUND,
            details=details
        )

class AttemptNotFoundError(NotFoundError):
    """Error raised when an attempt is not found"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.ATTEMPT_NOT_FOUND,
            details=details
        )

class UserNotFoundError(NotFoundError):
    """Error raised when a user is not found"""

    def __init__(self, user_id: str, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details["user_id"] = user_id
        super().__init__(
            message=f"User with ID {user_id} not found",
            code=ErrorCode.USER_NOT_FOUND,
            details=details
        )

class IneligibleError(PlatformError):
    """Error raised when the eligibility guard denies a new attempt"""

    def __init__(
        self,
        reason: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["reason"] = reason
        super().__init__(
            message=message,
            code=ErrorCode.INELIGIBLE,
            severity=ErrorSeverity.WARNING,
            details=details,
            context=context
        )
        self.reason = reason

class InvalidStateError(PlatformError):
    """Error raised when an operation is not valid for the attempt's current status"""

    def __init__(self, attempt_id: str, status: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} attempt {attempt_id} with status {status}",
            code=ErrorCode.INVALID_STATE,
            severity=ErrorSeverity.WARNING,
            details={"attempt_id": attempt_id, "status": status, "operation": operation}
        )

class AttemptExpiredError(PlatformError):
    """Error raised when a call arrives after the attempt's time limit has elapsed"""

    def __init__(self, attempt_id: str, time_limit_minutes: int):
        super().__init__(
            message=f"Time limit of {time_limit_minutes} minutes for attempt {attempt_id} has elapsed",
            code=ErrorCode.ATTEMPT_EXPIRED,
            severity=ErrorSeverity.WARNING,
            details={"attempt_id": attempt_id, "time_limit_minutes": time_limit_minutes}
        )

class ConcurrencyConflictError(PlatformError):
    """Error raised when an optimistic-lock version check fails"""

    def __init__(self, attempt_id: str, expected_version: int, actual_version: Optional[int] = None):
        super().__init__(
            message=f"Attempt {attempt_id} was modified concurrently",
            code=ErrorCode.CONCURRENCY_CONFLICT,
            severity=ErrorSeverity.WARNING,
            details={
                "attempt_id": attempt_id,
                "expected_version": expected_version,
                "actual_version": actual_version
            }
        )

class IntegrityGapError(PlatformError):
    """Error raised when a completed attempt's contribution to the user record was not applied"""

    def __init__(
        self,
        attempt_id: str,
        user_id: str,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            message=f"Completed attempt {attempt_id} was not applied to academic record of user {user_id}",
            code=ErrorCode.INTEGRITY_GAP,
            severity=ErrorSeverity.ERROR,
            details={"attempt_id": attempt_id, "user_id": user_id},
            cause=cause
        )

class DatabaseError(PlatformError):
    """Error raised for persistence-layer failures"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=ErrorCode.DATABASE_ERROR,
            severity=ErrorSeverity.ERROR,
            details=details,
            cause=cause,
            context=context
        )

# HTTP status for each error code
_HTTP_STATUS = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INELIGIBLE: 400,
    ErrorCode.NOT_FOUND_ERROR: 404,
    ErrorCode.ASSESSMENT_NOT_FOUND: 404,
    ErrorCode.QUESTION_NOT_FOUND: 404,
    ErrorCode.ATTEMPT_NOT_FOUND: 404,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.INVALID_STATE: 409,
    ErrorCode.CONCURRENCY_CONFLICT: 409,
    ErrorCode.ATTEMPT_EXPIRED: 410,
    ErrorCode.DATABASE_ERROR: 503,
}

def http_status_for(error: PlatformError) -> int:
    """Map an error to the HTTP status code returned to API callers."""
    return _HTTP_STATUS.get(error.code, 500)

def convert_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    default_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
    default_severity: ErrorSeverity = ErrorSeverity.ERROR,
    context: Optional[Dict[str, Any]] = None
) -> PlatformError:
    """
    Convert a standard exception to a PlatformError.

    Args:
        exception: The exception to convert
        default_message: Default message if the exception has no message
        default_code: Default error code
        default_severity: Default error severity
        context: Optional additional context

    Returns:
        Converted PlatformError
    """
    if isinstance(exception, PlatformError):
        # If it's already a PlatformError, just update the context if provided
        if context:
            exception.context.update(context)
        return exception

    message = str(exception) or default_message

    return PlatformError(
        message=message,
        code=default_code,
        severity=default_severity,
        cause=exception,
        context=context
    )

# Retry decorator with exponential backoff
def retry(
    max_retries: int = 3,
    retry_delay: float = 1.0,
    backoff_factor: float = 2.0,
    jitter: float = 0.1,
    retry_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    ignore_exceptions: Tuple[Type[Exception], ...] = (),
    on_retry: Optional[Callable[[int, Exception, float], None]] = None
):
    """
    Decorator for retrying functions when exceptions occur.

    Args:
        max_retries: Maximum number of retries
        retry_delay: Initial delay between retries in seconds
        backoff_factor: Factor to increase delay with each retry
        jitter: Random jitter factor to add to delay
        retry_exceptions: Tuple of exception types to retry on
        ignore_exceptions: Tuple of exception types to not retry on
        on_retry: Optional callback called before each retry

    Returns:
        Decorated function
    """
    def decorator(func: F) -> F:
        is_async = asyncio.iscoroutinefunction(func)

        if is_async:
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                retries = 0
                delay = retry_delay

                while True:
                    try:
                        return await func(*args, **kwargs)
                    except ignore_exceptions:
                        raise
                    except retry_exceptions as e:
                        retries += 1
                        if retries > max_retries:
                            raise

                        actual_delay = delay * (1 + random.uniform(-jitter, jitter))

                        if on_retry:
                            on_retry(retries, e, actual_delay)

                        logger.warning(
                            f"Retry {retries}/{max_retries} for {func.__name__} "
                            f"after {actual_delay:.2f}s due to {type(e).__name__}: {e}"
                        )
                        await asyncio.sleep(actual_delay)
                        delay *= backoff_factor

            return cast(F, async_wrapper)
        else:
            @functools.wraps(func)
            def sync_wrapper(*args, **kwargs):
                retries = 0
                delay = retry_delay

                while True:
                    try:
                        return func(*args, **kwargs)
                    except ignore_exceptions:
                        raise
                    except retry_exceptions as e:
                        retries += 1
                        if retries > max_retries:
                            raise

                        actual_delay = delay * (1 + random.uniform(-jitter, jitter))

                        if on_retry:
                            on_retry(retries, e, actual_delay)

                        logger.warning(
                            f"Retry {retries}/{max_retries} for {func.__name__} "
                            f"after {actual_delay:.2f}s due to {type(e).__name__}: {e}"
                        )
                        time.sleep(actual_delay)
                        delay *= backoff_factor

            return cast(F, sync_wrapper)

    return decorator

# API response generator
def error_response(
    error: Union[PlatformError, Exception],
    include_details: bool = True,
    include_stack_trace: bool = False
) -> Dict[str, Any]:
    """
    Generate a standardized API error response.

    Args:
        error: The error to generate a response for
        include_details: Whether to include error details
        include_stack_trace: Whether to include stack trace

    Returns:
        Standardized error response dictionary
    """
    if not isinstance(error, PlatformError):
        error = convert_exception(error)

    error_info = error.to_error_info(include_stack_trace=include_stack_trace)

    response = {
        "status": "error",
        "code": error_info.code,
        "message": error_info.message
    }

    if include_details and error_info.details:
        response["details"] = error_info.details

    return response

# Global error logging function
def log_error(
    error: Union[PlatformError, Exception],
    level: int = logging.ERROR,
    include_stack_trace: bool = True,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log an error with standardized format.

    Args:
        error: The error to log
        level: Logging level
        include_stack_trace: Whether to include stack trace
        context: Additional context to include
    """
    if not isinstance(error, PlatformError):
        error = convert_exception(error, context=context)
    elif context:
        error.context.update(context)

    message = f"ERROR [{error.code.value}]: {error.message}"

    if error.context:
        context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
        message += f" (context: {context_str})"

    if error.cause:
        message += f" caused by {type(error.cause).__name__}: {str(error.cause)}"

    if include_stack_trace:
        message += f"\n{traceback.format_exc()}"

    logger.log(level, message)
