"""Error handling utilities for the case intake pipeline."""

from dataclasses import dataclass
from typing import Optional, Dict, Any, Iterable
from enum import Enum


class ErrorType(Enum):
    """Enumeration of error types in the case intake pipeline."""

    # Media Errors
    IMAGE_DECODE_FAILED = "IMAGE_DECODE_FAILED"

    # Submission Errors
    VALIDATION_FAILED = "VALIDATION_FAILED"

    # Storage Errors
    IMAGE_NOT_FOUND = "IMAGE_NOT_FOUND"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"

    # Delivery Errors
    DELIVERY_REJECTED = "DELIVERY_REJECTED"
    DELIVERY_TIMEOUT = "DELIVERY_TIMEOUT"
    DELIVERY_AUTH_ERROR = "DELIVERY_AUTH_ERROR"
    DELIVERY_SERVICE_ERROR = "DELIVERY_SERVICE_ERROR"

    # Configuration Errors
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"

    # General Errors
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class ErrorContext:
    """
    Context information for errors in the case intake pipeline.

    Attributes:
        error_type: Type of error from ErrorType enum
        message: Human-readable error message
        recoverable: Whether the pipeline can continue past the error
        fallback_action: Optional description of fallback action taken
        details: Optional additional error details
        original_exception: Optional original exception that caused this error
    """

    error_type: ErrorType
    message: str
    recoverable: bool
    fallback_action: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    original_exception: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error context to dictionary for logging/serialization.

        Returns:
            Dictionary representation of error context
        """
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "fallback_action": self.fallback_action,
            "details": self.details or {},
            "original_exception": str(self.original_exception) if self.original_exception else None
        }


class IntakeError(Exception):
    """
    Base exception for all case intake errors.

    Wraps errors with an ErrorContext so the HTTP boundary can map them to
    a response without inspecting the original exception.

    Attributes:
        context: ErrorContext with detailed error information
    """

    status_code = 500

    def __init__(self, context: ErrorContext):
        self.context = context
        super().__init__(context.message)

    def __str__(self) -> str:
        base = f"{self.context.error_type.value}: {self.context.message}"
        if self.context.fallback_action:
            base += f" (Fallback: {self.context.fallback_action})"
        return base

    @property
    def message(self) -> str:
        return self.context.message

    @property
    def details(self) -> Dict[str, Any]:
        return self.context.details or {}

    def to_dict(self) -> Dict[str, Any]:
        return self.context.to_dict()

    @classmethod
    def unexpected(cls, error: Exception) -> "IntakeError":
        """Wrap an exception raised outside the intake error hierarchy."""
        context = ErrorContext(
            error_type=ErrorType.UNKNOWN_ERROR,
            message=f"Unexpected error: {error}",
            recoverable=False,
            details={"exception_type": type(error).__name__},
            original_exception=error
        )
        return cls(context)


class DecodeError(IntakeError):
    """Raised when an uploaded file is not a decodable raster image."""

    status_code = 400

    @classmethod
    def unreadable_image(
        cls,
        filename: str,
        error: Optional[Exception] = None,
        fallback_action: Optional[str] = None
    ) -> "DecodeError":
        """
        Create error for an image that could not be decoded.

        Args:
            filename: Name of the uploaded file
            error: Original exception raised by the decoder
            fallback_action: Optional fallback action

        Returns:
            DecodeError instance
        """
        reason = str(error) if error else "unrecognized image signature"
        context = ErrorContext(
            error_type=ErrorType.IMAGE_DECODE_FAILED,
            message=f"Failed to decode image '{filename}': {reason}",
            recoverable=True,
            fallback_action=fallback_action or "Skip file and continue with remaining photos",
            details={"filename": filename},
            original_exception=error
        )
        return cls(context)


class ValidationError(IntakeError):
    """Raised when a case submission is missing required fields."""

    status_code = 400

    @classmethod
    def missing_fields(cls, fields: Iterable[str]) -> "ValidationError":
        """
        Create error for a submission missing required fields.

        Args:
            fields: Names of the missing fields

        Returns:
            ValidationError instance
        """
        missing = list(fields)
        context = ErrorContext(
            error_type=ErrorType.VALIDATION_FAILED,
            message=f"Please fill in required fields: {', '.join(missing)}",
            recoverable=False,
            details={"missing_fields": missing}
        )
        return cls(context)

    @classmethod
    def too_many_files(cls, count: int, limit: int) -> "ValidationError":
        context = ErrorContext(
            error_type=ErrorType.VALIDATION_FAILED,
            message=f"Too many photos: {count} uploaded, at most {limit} allowed",
            recoverable=False,
            details={"count": count, "limit": limit}
        )
        return cls(context)

    @classmethod
    def invalid_image(cls, index: Optional[int], reason: str) -> "ValidationError":
        """
        Create error for an image entry the client sent in the wrong shape.

        Args:
            index: Zero-based position in the ``images`` list, or None when
                the list itself is wrong
            reason: What is wrong with the entry

        Returns:
            ValidationError instance
        """
        where = "images" if index is None else f"Image {index + 1}"
        context = ErrorContext(
            error_type=ErrorType.VALIDATION_FAILED,
            message=f"{where}: {reason}",
            recoverable=False,
            details={"index": index, "reason": reason}
        )
        return cls(context)


class ImageNotFoundError(IntakeError):
    """Raised when a storage key has no stored image."""

    status_code = 404

    @classmethod
    def for_key(cls, key: str) -> "ImageNotFoundError":
        context = ErrorContext(
            error_type=ErrorType.IMAGE_NOT_FOUND,
            message="Image not found",
            recoverable=False,
            details={"key": key}
        )
        return cls(context)


class MalformedPayloadError(IntakeError):
    """Raised when a stored data URI cannot be decoded back to bytes."""

    status_code = 500

    @classmethod
    def for_key(
        cls,
        key: Optional[str],
        reason: str,
        error: Optional[Exception] = None
    ) -> "MalformedPayloadError":
        context = ErrorContext(
            error_type=ErrorType.MALFORMED_PAYLOAD,
            message=f"Stored image payload is malformed: {reason}",
            recoverable=False,
            details={"key": key, "reason": reason},
            original_exception=error
        )
        return cls(context)


class DeliveryError(IntakeError):
    """Raised when the delivery channel rejects or fails to send a message."""

    status_code = 502

    @classmethod
    def from_client_error(
        cls,
        error: Exception,
        channel: str,
        operation: str = "send_email"
    ) -> "DeliveryError":
        """
        Create DeliveryError from a boto3 ClientError.

        Args:
            error: Original boto3 ClientError
            channel: Name of the delivery channel
            operation: Description of operation that failed

        Returns:
            DeliveryError instance
        """
        error_code = "Unknown"
        error_message = str(error)

        if hasattr(error, 'response'):
            error_info = error.response.get("Error", {})
            error_code = error_info.get("Code", "Unknown")
            error_message = error_info.get("Message", str(error))

        error_type_map = {
            "Throttling": ErrorType.DELIVERY_REJECTED,
            "MessageRejected": ErrorType.DELIVERY_REJECTED,
            "MailFromDomainNotVerifiedException": ErrorType.DELIVERY_REJECTED,
            "AccessDenied": ErrorType.DELIVERY_AUTH_ERROR,
            "AccessDeniedException": ErrorType.DELIVERY_AUTH_ERROR,
            "InvalidClientTokenId": ErrorType.DELIVERY_AUTH_ERROR,
            "RequestTimeout": ErrorType.DELIVERY_TIMEOUT,
            "ServiceUnavailable": ErrorType.DELIVERY_SERVICE_ERROR,
        }

        context = ErrorContext(
            error_type=error_type_map.get(error_code, ErrorType.DELIVERY_SERVICE_ERROR),
            message=f"Delivery via {channel} failed during {operation}: {error_message}",
            recoverable=False,
            details={
                "channel": channel,
                "error_code": error_code,
                "operation": operation
            },
            original_exception=error
        )
        return cls(context)

    @classmethod
    def from_response(
        cls,
        channel: str,
        status_code: int,
        body: str
    ) -> "DeliveryError":
        """
        Create DeliveryError from a rejected HTTP response.

        Args:
            channel: Name of the delivery channel
            status_code: HTTP status returned by the channel
            body: Response text (truncated to keep logs readable)

        Returns:
            DeliveryError instance
        """
        if status_code in (401, 403):
            error_type = ErrorType.DELIVERY_AUTH_ERROR
        elif status_code >= 500:
            error_type = ErrorType.DELIVERY_SERVICE_ERROR
        else:
            error_type = ErrorType.DELIVERY_REJECTED

        context = ErrorContext(
            error_type=error_type,
            message=f"Delivery via {channel} failed: {status_code} {body[:200]}",
            recoverable=False,
            details={
                "channel": channel,
                "status_code": status_code,
                "response": body[:200]
            }
        )
        return cls(context)

    @classmethod
    def from_exception(
        cls,
        channel: str,
        error: Exception,
        timed_out: bool = False
    ) -> "DeliveryError":
        context = ErrorContext(
            error_type=ErrorType.DELIVERY_TIMEOUT if timed_out else ErrorType.DELIVERY_SERVICE_ERROR,
            message=f"Delivery via {channel} failed: {str(error)}",
            recoverable=False,
            details={"channel": channel},
            original_exception=error
        )
        return cls(context)


class ConfigurationError(IntakeError):
    """Raised when a required setting is missing or invalid."""

    status_code = 500

    @classmethod
    def missing(cls, setting: str) -> "ConfigurationError":
        context = ErrorContext(
            error_type=ErrorType.CONFIG_MISSING,
            message=f"{setting} is not configured",
            recoverable=False,
            details={"setting": setting}
        )
        return cls(context)

    @classmethod
    def invalid(cls, setting: str, value: Any) -> "ConfigurationError":
        context = ErrorContext(
            error_type=ErrorType.CONFIG_INVALID,
            message=f"Invalid value for {setting}: {value!r}",
            recoverable=False,
            details={"setting": setting, "value": str(value)}
        )
        return cls(context)


def status_code_for(error: Exception) -> int:
    """
    Map an exception to the HTTP status the boundary should return.

    Args:
        error: Any exception raised while handling a request

    Returns:
        HTTP status code
    """
    if isinstance(error, IntakeError):
        return error.status_code
    return 500


def handle_decode_error(
    error: Exception,
    filename: str,
    logger
) -> DecodeError:
    """
    Log an image decode failure and return the wrapped error.

    Decode failures are recoverable: the caller skips the file and carries
    on with the rest of the batch, so this does not raise.

    Args:
        error: Original exception raised by the decoder
        filename: Name of file being processed
        logger: Logger instance for error logging

    Returns:
        DecodeError with context
    """
    decode_error = error if isinstance(error, DecodeError) else DecodeError.unreadable_image(
        filename=filename,
        error=error
    )
    logger.warning(f"Skipping upload: {decode_error}")
    return decode_error
