"""Exception hierarchy for the dubbing pipeline."""


class DubbingError(Exception):
    """Base class for every error raised by dubbing_studio."""


class NoCredentialsError(DubbingError):
    """No API keys are configured, so no remote call can be made."""

    def __init__(self, message: str = "Provide at least one API key."):
        super().__init__(message)


class CredentialsExhaustedError(DubbingError):
    """Every key in the pool failed with a quota or auth error."""

    def __init__(self, attempts: int, last_error: Exception | None = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"All {attempts} API key(s) are invalid or out of quota."
        if last_error is not None:
            message += f" Last error: {last_error}"
        super().__init__(message)


class TooManySpeakersError(DubbingError):
    """More speaking characters than the provider can voice at once."""

    def __init__(self, speakers: list[str]):
        self.speakers = speakers
        super().__init__(
            f"At most two speaking characters are supported, got {len(speakers)}: "
            + ", ".join(speakers)
        )


class NoAudioError(DubbingError):
    """The provider returned no audio, or there was nothing to assemble."""

    def __init__(self, message: str = "No audio data was produced."):
        super().__init__(message)


class InvalidScriptError(DubbingError):
    """Input file is not a readable UTF-8 text script."""


class JobStateError(DubbingError):
    """Requested operation is not allowed in the job's current status."""


class QueueBusyError(DubbingError):
    """A batch run is active, so a single-job run is refused."""


class AudioReleasedError(DubbingError):
    """The audio resource was already released."""


class JobNotFoundError(DubbingError, KeyError):
    """No job with the given id."""
