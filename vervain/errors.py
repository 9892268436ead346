"""Exception types raised by Vervain components."""

from typing import Optional


class VervainError(Exception):
    """Base class for Vervain errors."""


class SettingsUnavailable(VervainError):
    """The settings store could not be reached or returned an error."""


class InvalidCandidate(VervainError):
    """A scan candidate (URL, sender address) could not be parsed."""


class AIAnalysisError(VervainError):
    """The AI analysis provider failed or returned an unusable reply."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class MissingAPIKey(AIAnalysisError):
    """AI analysis is enabled but no API key is configured."""

    def __init__(self, message: str = "No API key configured for AI analysis"):
        super().__init__(message)
