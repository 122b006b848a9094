"""Error taxonomy shared by the services and the HTTP layer."""


class FinFlowError(Exception):
    """Base error carrying the message and status shown to API callers."""

    status_code = 500
    public_message = "Something went wrong"

    def __init__(self, message: str = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class AuthorizationError(FinFlowError):
    """Missing or invalid bearer credential."""

    status_code = 401
    public_message = "Unauthorized"


class SignupError(FinFlowError):
    """The identity provider refused to create the user."""

    status_code = 400
    public_message = "Failed to create user"


class ConfigurationError(FinFlowError):
    """No completion gateway credential is available."""

    public_message = "OpenRouter API key not configured. Please add your API key in Settings."


class UpstreamError(FinFlowError):
    """The completion gateway failed or returned something unusable."""

    public_message = "Failed to get response from AI"


class StoreError(FinFlowError):
    """A record read or write failed."""

    public_message = "Failed to access stored records"
