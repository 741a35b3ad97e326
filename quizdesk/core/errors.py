"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``quizdesk.main`` renders them into the JSON error
envelope with the status code carried by each class.
"""
from fastapi import status


class QuizError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "internal_error"

    def __init__(self, message: str = "An internal error occurred"):
        super().__init__(message)
        self.message = message


class InvalidArgument(QuizError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "invalid_argument"


class MissingToken(QuizError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "missing_token"

    def __init__(self, message: str = "Session token is missing"):
        super().__init__(message)


class Unauthorized(QuizError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "unauthorized"

    def __init__(self, message: str = "Invalid session or token"):
        super().__init__(message)


class SessionClosed(QuizError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "session_closed"

    def __init__(self, message: str = "Session is already finished"):
        super().__init__(message)


class NotFound(QuizError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class Conflict(QuizError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"
