from typing import Optional


class GatewayError(Exception):
    """Base exception class for the chat gateway."""
    status_code = 500


class ValidationError(GatewayError):
    """Raised when a chat request is missing required fields."""
    status_code = 400


class UnknownModel(GatewayError):
    """Raised when the requested model is not a configured provider."""
    status_code = 400

    def __init__(self, model_name: str):
        self.model_name = model_name
        super().__init__(f"Invalid model name: {model_name!r}")


class ConfigError(GatewayError):
    """Raised when configuration or a provider credential is missing."""
    pass


class UpstreamError(GatewayError):
    """Raised when a provider call fails at the HTTP or transport level."""

    def __init__(self, provider: str, status: Optional[int], body: str):
        self.provider = provider
        self.status = status
        self.body = body
        if status is None:
            message = f"{provider} API request failed: {body}"
        else:
            message = f"{provider} API returned status code {status}: {body}"
        super().__init__(message)


class UpstreamParseError(GatewayError):
    """Raised when a provider reply does not have the expected shape."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"Unexpected {provider} response structure: {detail}")


class StoreUnavailable(GatewayError):
    """Raised when the session store cannot be reached."""
    pass


class HistoryUnavailable(GatewayError):
    """Raised when a conversation cannot be loaded before a provider call."""
    pass
