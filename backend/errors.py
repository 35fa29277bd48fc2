# errors.py
"""Exception types shared by the services and the HTTP layer."""


class ResumeCoachError(Exception):
    """Base class for all application errors."""


class InvalidMessageError(ResumeCoachError, ValueError):
    """Chat message missing or blank."""


class ModelServiceError(ResumeCoachError):
    """The upstream LLM call failed (connection, auth, rate limit...)."""


class ResumeStructureError(ResumeCoachError):
    """The structuring model did not return a usable resume JSON."""


class DocumentExtractionError(ResumeCoachError):
    """Text could not be pulled out of an uploaded document."""


class LinkedInFetchError(ResumeCoachError):
    """A LinkedIn profile could not be fetched."""


class LinkedInPrivateProfileError(ResumeCoachError):
    """LinkedIn served a login wall instead of the profile."""
