"""
Error taxonomy for the scene production pipeline.

Configuration errors are raised before any network call. External-service
errors wrap vendor failures. PipelineCancelled marks a cooperative stop and
is never shown to the user as a failure.
"""


class StudioError(Exception):
    """Base class for every error the workflow surfaces to the user."""


class ConfigurationError(StudioError):
    """A required credential or setting is missing."""


class PreconditionError(StudioError):
    """The requested operation does not apply to the scene's current state."""


class ExternalServiceError(StudioError):
    """An external AI service call failed."""


class ResponseParseError(ExternalServiceError):
    """The service answered, but the payload could not be parsed."""


class UpscaleFailedError(ExternalServiceError):
    """The upscale job reported FAILED."""


class UpscaleTimeoutError(ExternalServiceError):
    """The upscale job did not complete within the poll bound."""


class PipelineCancelled(StudioError):
    """A blocking operation was stopped through its cancel token."""


def as_studio_error(error: Exception) -> StudioError:
    """Vendor SDK errors become ExternalServiceError; ours pass through."""
    if isinstance(error, StudioError):
        return error
    wrapped = ExternalServiceError(str(error) or error.__class__.__name__)
    wrapped.__cause__ = error
    return wrapped
