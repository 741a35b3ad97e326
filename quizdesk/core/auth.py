from typing import Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader

from quizdesk.core.config import settings
from quizdesk.core.errors import MissingToken

# auto_error is off so a missing header becomes our 401 instead of FastAPI's 403
session_header = APIKeyHeader(name=settings.SESSION_TOKEN_HEADER, auto_error=False)


def optional_session_token(token: Optional[str] = Depends(session_header)) -> Optional[str]:
    return token or None


def require_session_token(token: Optional[str] = Depends(optional_session_token)) -> str:
    if not token:
        raise MissingToken()
    return token
