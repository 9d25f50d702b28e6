"""Custom exceptions for notionforms."""


class NotionFormsError(Exception):
    """Base exception for all notionforms errors."""


class ConfigurationError(NotionFormsError):
    """Configuration, environment variable or form config error."""


class NotionAPIError(NotionFormsError):
    """Error from Notion API."""

    def __init__(self, status_code: int, message: str, code: str | None = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"Notion API error ({status_code}): {message}")


class RateLimitError(NotionAPIError):
    """Rate limit exceeded error."""

    def __init__(self, retry_after: float | None = None):
        self.retry_after = retry_after
        message = f"Rate limited (retry after {retry_after}s)" if retry_after else "Rate limited"
        super().__init__(429, message, code="rate_limited")


class FormPermissionError(NotionFormsError):
    """Operation not allowed by the form's permissions."""


class SubmissionValidationError(NotionFormsError):
    """Form submission rejected by field validation."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        details = "; ".join(f"{prop_id}: {msg}" for prop_id, msg in errors.items())
        super().__init__(f"Submission rejected ({len(errors)} invalid fields): {details}")
