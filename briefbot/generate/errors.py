"""Errors raised while generating a brief. The processor records them on the job as one "generation failed: <cause>" message."""


class GenerationError(Exception):
    """Base for every brief generation failure."""


class AuthenticationError(GenerationError):
    """Credentials rejected by the generation service. Never retried."""


class EmptyResponseError(GenerationError):
    pass


class InvalidJSONError(GenerationError):
    pass


class InvalidStructureError(GenerationError):
    """Response parsed but a required field is missing or has the wrong type. Never retried."""


class ExhaustedRetriesError(GenerationError):
    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"exhausted retries after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class BriefGenerationFailed(Exception):
    """Consolidated failure surfaced to callers of BriefGenerator.generate; the specific GenerationError is chained as __cause__."""

    def __init__(self, cause: BaseException):
        super().__init__(f"generation failed: {cause}")
        self.cause = cause
