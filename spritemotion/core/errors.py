"""Domain-specific exceptions for the sprite animation engine."""


class ValidationError(ValueError):
    """Raised when user-provided settings or inputs fail validation."""


class NoFramesError(ValidationError):
    """Raised when every frame of a group has been excluded."""

    def __init__(self, group_id: str | None = None):
        message = "No valid frames to render"
        if group_id:
            message = f"{message} (group {group_id})"
        super().__init__(message)


class UnsupportedFormatError(ValueError):
    """Raised when an uploaded or generated image cannot be decoded."""

    def __init__(self, source: str, reason: str | None = None):
        message = f"Unsupported image: {source}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ProcessingError(RuntimeError):
    """Raised when the rendering pipeline fails unexpectedly."""


class CodecError(ProcessingError):
    """Raised when the animation codec cannot produce an output."""


class AssemblyInProgressError(ProcessingError):
    """Raised when an export is requested for a group that is already exporting."""

    def __init__(self, group_id: str):
        super().__init__(f"An export is already running for group {group_id}")
        self.group_id = group_id


class GenerationError(RuntimeError):
    """Raised when the generative-image service returns an unusable result."""


class TransientServiceError(GenerationError):
    """Raised for service failures worth retrying (overload, internal error)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StorageFullError(RuntimeError):
    """Raised when durable storage has no room for a write."""
