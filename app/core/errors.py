from typing import Optional


class CoachError(RuntimeError):
    """Base for every failure the ask-mira handler maps to an error response."""

    status_code = 500
    public_message = "Coach is unavailable right now"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class InvalidInput(CoachError):
    status_code = 400
    public_message = "Missing userId or userMessage"


class ProfileNotFound(CoachError):
    public_message = "Failed to load user profile"


class StoreUnavailable(CoachError):
    public_message = "Failed to load coaching context"


class UpstreamError(CoachError):
    public_message = "Coach is unavailable right now"

    def __init__(
        self,
        message: str,
        provider: str = "",
        model: str = "",
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        # HTTP status of the provider call, not of our response.
        self.upstream_status = status_code


class SchemaViolation(CoachError):
    public_message = "Coach returned an invalid response"
