"""Error taxonomy for the adaptive quiz engine.

Every error raised across the engine boundary derives from QuizEngineError,
which carries the HTTP status the API layer answers with and whether the
caller may safely retry the same request.
"""


class QuizEngineError(Exception):
    status_code = 500
    code = "quiz_engine_error"
    retryable = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    @classmethod
    def default_message(cls) -> str:
        return "Adaptive quiz engine error"


class AuthenticationRequired(QuizEngineError):
    status_code = 401
    code = "authentication_required"

    @classmethod
    def default_message(cls) -> str:
        return "Authentication required"


class NotFound(QuizEngineError):
    status_code = 404
    code = "not_found"

    @classmethod
    def default_message(cls) -> str:
        return "Not found"


class SectionNotFound(NotFound):
    code = "section_not_found"

    @classmethod
    def default_message(cls) -> str:
        return "Section not found"


class SessionNotFound(NotFound):
    code = "session_not_found"

    @classmethod
    def default_message(cls) -> str:
        return "Adaptive quiz session not found"


class ResponseNotFound(NotFound):
    code = "response_not_found"

    @classmethod
    def default_message(cls) -> str:
        return "Adaptive quiz question not found in this session"


class InvalidState(QuizEngineError):
    status_code = 409
    code = "invalid_state"

    @classmethod
    def default_message(cls) -> str:
        return "Quiz session is not active"


class GenerationFailed(QuizEngineError):
    status_code = 502
    code = "generation_failed"
    retryable = True

    @classmethod
    def default_message(cls) -> str:
        return "Failed to generate question"


class GenerationTimeout(GenerationFailed):
    status_code = 504
    code = "generation_timeout"

    @classmethod
    def default_message(cls) -> str:
        return "Question generator timed out"


class StorageFailure(QuizEngineError):
    status_code = 500
    code = "storage_failure"

    @classmethod
    def default_message(cls) -> str:
        return "Adaptive quiz storage operation failed"


class DuplicateRecord(StorageFailure):
    """A write collided with a UNIQUE constraint or index."""

    status_code = 409
    code = "duplicate_record"

    @classmethod
    def default_message(cls) -> str:
        return "Record already exists"


class MaterializationFailed(QuizEngineError):
    code = "materialization_failed"

    @classmethod
    def default_message(cls) -> str:
        return "Failed to create quiz from adaptive session"
