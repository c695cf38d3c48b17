"""
Custom Exception Classes for the CV Intelligence pipeline
"""
from typing import Dict, Any


class CVIntelligenceError(Exception):
    """Base exception for the CV Intelligence pipeline"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/reporting"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class UnreadableDocument(CVIntelligenceError):
    """Raised when no text can be extracted from a document"""

    def __init__(self, message: str, file_name: str = None, mime_type: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if file_name:
            details['file_name'] = file_name
        if mime_type:
            details['mime_type'] = mime_type
        super().__init__(message, error_code="UNREADABLE_DOCUMENT", details=details, **kwargs)


class ExtractionError(CVIntelligenceError):
    """Raised when a structured-extraction backend call fails"""

    def __init__(self, message: str, provider: str = None, status_code: int = None, **kwargs):
        details = kwargs.pop('details', {})
        if provider:
            details['provider'] = provider
        if status_code:
            details['status_code'] = status_code
        super().__init__(message, error_code="EXTRACTION_ERROR", details=details, **kwargs)


class EmbeddingError(CVIntelligenceError):
    """Raised when an embedding backend call fails"""

    def __init__(self, message: str, provider: str = None, model_name: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if provider:
            details['provider'] = provider
        if model_name:
            details['model_name'] = model_name
        super().__init__(message, error_code="EMBEDDING_ERROR", details=details, **kwargs)


class ProcessingError(CVIntelligenceError):
    """Raised when a pipeline stage fails unexpectedly"""

    def __init__(self, message: str, document_id: str = None, stage: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if document_id:
            details['document_id'] = document_id
        if stage:
            details['stage'] = stage
        super().__init__(message, error_code="PROCESSING_ERROR", details=details, **kwargs)


class ConfigurationError(CVIntelligenceError):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


# Exception context manager for pipeline stages
class ExceptionContext:
    """Context manager for handling exceptions with additional context"""

    def __init__(self, operation: str, logger=None, **context):
        self.operation = operation
        self.logger = logger
        self.context = context

    def __enter__(self):
        if self.logger:
            self.logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            # Cancellation and interpreter exits are not stage failures
            if not issubclass(exc_type, Exception):
                return False

            if self.logger:
                self.logger.error(
                    f"Operation failed: {self.operation} - {exc_val}",
                    extra={**self.context, "exception_type": exc_type.__name__}
                )

            # Re-raise custom exceptions as-is
            if isinstance(exc_val, CVIntelligenceError):
                return False

            wrapped_exc = ProcessingError(
                f"Processing error in {self.operation}: {str(exc_val)}",
                stage=self.operation,
                details=dict(self.context),
                cause=exc_val
            )
            raise wrapped_exc from exc_val
        else:
            if self.logger:
                self.logger.debug(f"Operation completed: {self.operation}", extra=self.context)

        return False


# Retry decorator with exponential backoff
def retry_with_logging(
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    exceptions: tuple = (Exception,),
    logger=None
):
    """Decorator to retry operations with exponential backoff and logging"""
    import time
    import functools
    from random import uniform

    def decorator(func):
        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if logger:
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: {str(e)}"
                        )

                    if attempt < max_attempts - 1:  # Don't sleep on the last attempt
                        sleep_time = backoff_factor * (2 ** attempt) + uniform(0, backoff_factor)
                        time.sleep(sleep_time)
                    else:
                        if logger:
                            logger.error(f"All {max_attempts} attempts failed for {func.__name__}")
                        raise last_exception

            return None  # Should never reach here

        return sync_wrapper

    return decorator
