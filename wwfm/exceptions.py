"""Custom exception hierarchy for the Worldwide FM service."""


class WWFMError(Exception):
    """Base exception for all Worldwide FM errors."""


class ConfigError(WWFMError):
    """Raised when required configuration is missing."""


class CosmicAPIError(WWFMError):
    """Raised when a Cosmic CMS request fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RadioCultError(WWFMError):
    """Raised when the RadioCult API fails or reports success=false."""


class MixcloudError(WWFMError):
    """Raised when the Mixcloud API fails."""


class LLMAPIError(WWFMError):
    """Raised when a Gemini API call fails."""


class WebhookError(WWFMError):
    """Raised when an incoming webhook cannot be processed."""


class WebhookSignatureError(WebhookError):
    """Raised when a webhook signature or shared secret does not verify."""


class MigrationError(WWFMError):
    """Raised when a migration step fails."""
