from typing import Dict, Any, Callable
from datetime import datetime, timezone
from functools import wraps
import logging

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class MinirepoException(Exception):
    """Base exception for every error raised by minirepo"""
    def __init__(self, message: str, error_code: str = None, details: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "GENERAL_ERROR"
        self.details = details


class ConfigurationError(MinirepoException):
    """Invalid repository or relation declaration (raised at construction time)"""
    def __init__(self, message: str, details: str = None, error_code: str = None):
        super().__init__(message, error_code or "CONFIGURATION_ERROR", details)

class NotFoundError(MinirepoException):
    """Requested record does not exist"""
    def __init__(self, message: str, details: str = None, error_code: str = None):
        super().__init__(message, error_code or "NOT_FOUND", details)

class ExecutionError(MinirepoException):
    """The SQL execution layer failed: connection, constraint, malformed clause"""
    def __init__(self, message: str, details: str = None, error_code: str = None):
        super().__init__(message, error_code or "EXECUTION_ERROR", details)

class ValidationError(MinirepoException):
    """Invalid input handed to a repository operation"""
    def __init__(self, message: str, details: str = None, error_code: str = None):
        super().__init__(message, error_code or "VALIDATION_ERROR", details)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def create_error_response(exception: MinirepoException) -> Dict[str, Any]:
    # 1. Log the error
    logger.error(f"Error: {exception.error_code} - {exception.message}")
    if exception.details:
        logger.error(f"Details: {exception.details}")

    # 2. Build the error body
    return {
        "status": False,
        "timestamp": _utc_timestamp(),
        "error_code": exception.error_code,
        "message": exception.message,
        "details": exception.details
    }

def handle_unexpected_error(error: Exception, context: str = "") -> Dict[str, Any]:
    error_msg = f"Unexpected error{': ' + context if context else ''}"
    logger.error(f"Unexpected error in {context}: {str(error)}", exc_info=True)

    return {
        "status": False,
        "timestamp": _utc_timestamp(),
        "error_code": "INTERNAL_ERROR",
        "message": error_msg,
        "details": None
    }


class ErrorManager:
    """Central error handling helpers"""

    HTTP_STATUS_CODES = {
        "CONFIGURATION_ERROR": 500,
        "NOT_FOUND": 404,
        "EXECUTION_ERROR": 500,
        "VALIDATION_ERROR": 422,
    }

    @staticmethod
    def operation_context(operation_name: str):
        """
        Wrap a SQL facility operation so library failures surface as ExecutionError.

        MinirepoException subclasses pass through untouched, SQLAlchemyError is
        re-raised as ExecutionError with the original chained as __cause__.
        """
        def decorator(func: Callable) -> Callable:
            @wraps(func)
            def wrapper(*args, **kwargs):
                try:
                    logger.debug(f"Starting operation: {operation_name}")
                    result = func(*args, **kwargs)
                    logger.debug(f"Completed operation: {operation_name}")
                    return result

                except MinirepoException:
                    logger.warning(f"Operation {operation_name} failed")
                    raise

                except SQLAlchemyError as e:
                    error_msg = f"Database error in {operation_name}"
                    logger.error(f"{error_msg}: {str(e)}")
                    raise ExecutionError(error_msg, str(e)) from e

            return wrapper
        return decorator

    @staticmethod
    def get_http_status_code(exception: MinirepoException) -> int:
        return ErrorManager.HTTP_STATUS_CODES.get(exception.error_code, 500)

    @staticmethod
    def exception_to_error_response(exception: MinirepoException) -> Dict[str, Any]:
        return create_error_response(exception)

    @staticmethod
    def validate_engine_state(engine) -> None:
        """Validate that the database engine has been started"""
        if not engine:
            raise ExecutionError(
                "Database engine not initialized",
                "Call start() method before performing operations"
            )

    @staticmethod
    def validate_required_fields(data: dict, required_fields: list, operation: str) -> None:
        """Validate required fields in input data"""
        missing_fields = [field for field in required_fields if field not in data]
        if missing_fields:
            raise ValidationError(
                f"Missing required fields for {operation}: {', '.join(missing_fields)}",
                f"Required fields: {required_fields}"
            )
