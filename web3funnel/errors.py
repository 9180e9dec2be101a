from typing import Any, Dict, List, Optional

from web3funnel.constants import (
    EXIT_CODE_FAILURE,
    EXIT_CODE_INVALID_EVENT_FILE,
)


class Web3FunnelError(Exception):
    """
    Generic web3funnel error.

    Args:
        message (str): The error message.
        error_code (Optional[int]): The error code.
    """
    def __init__(self, message: str = "An error occurred in web3funnel.\n"
                                      "Please check your configuration and try again.",
                 error_code: Optional[int] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)

    def get_exit_code(self) -> int:
        """
        Get the exit code associated with this error.

        Returns:
            int: The exit code.
        """
        return EXIT_CODE_FAILURE


class ConfigurationError(Web3FunnelError):
    """
    Error raised when a setting has an unusable value.
    """
    def __init__(self, setting: str, reason: str):
        self.setting = setting
        super().__init__(f"Invalid value for {setting}: {reason}")


class TransportError(Web3FunnelError):
    """
    Error raised when the ingest API does not accept a submission.

    Args:
        detail (str): What went wrong, as reported by the server or the HTTP client.
        status_code (Optional[int]): The HTTP status, None when no response arrived.
    """
    def __init__(self, detail: str, status_code: Optional[int] = None):
        self.detail = detail
        self.status_code = status_code
        prefix = f"HTTP {status_code}: " if status_code is not None else ""
        super().__init__(f"{prefix}{detail}")


class InvalidEventFileError(Web3FunnelError):
    """
    Error raised when an event file cannot be read as JSON lines.

    Args:
        path (str): The offending file.
        line (int): The 1-based line number.
        reason (str): Why the line was rejected.
    """
    def __init__(self, path: str, line: int, reason: str):
        self.path = path
        self.line = line
        super().__init__(f"Unable to read event at {path}:{line}\n{reason}")

    def get_exit_code(self) -> int:
        return EXIT_CODE_INVALID_EVENT_FILE


class ApiError(Exception):
    """
    Error raised by the ingest and analytics API, rendered as the JSON envelope
    ``{"success": false, "message": ..., "error": ...}``.
    """
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None,
                 status_code: Optional[int] = None):
        self.message = message
        self.error = error
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_content(self) -> Dict[str, Any]:
        content: Dict[str, Any] = {"success": False, "message": self.message}
        if self.error:
            content["error"] = self.error
        return content


class InvalidApiKeyError(ApiError):
    status_code = 401

    def __init__(self, message: str = "Invalid API key or website is inactive"):
        super().__init__(message)


class BatchSizeError(ApiError):
    status_code = 400


class DuplicateWebsiteError(ApiError):
    status_code = 409

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__("Website with this domain already exists")


class RateLimitExceededError(ApiError):
    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__("Too many requests, please try again later")


class RequestValidationFailedError(ApiError):
    """
    Error raised when a request body does not validate.

    Args:
        errors (List[Dict[str, Any]]): One ``{field, message, value}`` entry per problem.
    """
    status_code = 400

    def __init__(self, errors: List[Dict[str, Any]]):
        self.errors = errors
        super().__init__("Validation failed")

    def to_content(self) -> Dict[str, Any]:
        content = super().to_content()
        content["errors"] = self.errors
        return content
