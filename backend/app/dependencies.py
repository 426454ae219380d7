import logging
import os
from functools import lru_cache
from typing import Optional
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from supabase import create_client, Client
from dotenv import load_dotenv, find_dotenv

from app.exceptions import ConfigurationError
from app.services.ai.config import ConfigError, GenerationSettings, get_generation_settings
from app.services.ai.file_search import FileSearchStoreService
from app.services.db import CourseService, ResourceService, ThreadService
from app.services.forum_qa.service import QuestionAnsweringService
from app.supabase_client import get_service_client, get_supabase_client

_ = load_dotenv(find_dotenv())  # read local .env file

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cookie names (must match the frontend auth flow)
COOKIE_NAME_ACCESS = "sb_access_token"


@lru_cache(maxsize=1)
def get_auth_client() -> Client:
    """Anon-key client used only to verify access tokens."""
    return create_client(os.environ["SUPABASE_URL"], os.environ["SUPABASE_ANON_KEY"])


def _user_for_token(token: str):
    try:
        user_response = get_auth_client().auth.get_user(token)
    except Exception as e:
        logger.debug(f"Token verification failed: {e}")
        return None
    if user_response and user_response.user:
        return user_response
    return None


def get_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Access token from the HttpOnly cookie or the Authorization header.
    Prioritizes cookie-based auth, falls back to header-based auth.
    """
    token = request.cookies.get(COOKIE_NAME_ACCESS)
    if token:
        return token
    if credentials:
        return credentials.credentials
    raise HTTPException(status_code=401, detail="Not authenticated")


def verify_auth(token: str = Depends(get_access_token)):
    """Verify the access token and return the Supabase user response."""
    user_response = _user_for_token(token)
    if user_response is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_response


def get_db(
    token: str = Depends(get_access_token),
    user=Depends(verify_auth),
) -> Client:
    """Request-scoped Supabase client (RLS applies to the caller)."""
    return get_supabase_client(token)


def get_service_db(user=Depends(verify_auth)) -> Client:
    """Service-role client for writes the caller's RLS does not allow."""
    return get_service_client()


def get_settings() -> GenerationSettings:
    try:
        return get_generation_settings()
    except ConfigError as e:
        logger.error(f"Generation settings invalid: {e}")
        raise ConfigurationError(", ".join(e.missing_keys) or "generation", "settings") from e


def get_course_service(db: Client = Depends(get_db)) -> CourseService:
    return CourseService(db)


def get_resource_service(db: Client = Depends(get_db)) -> ResourceService:
    return ResourceService(db)


def get_question_service(
    db: Client = Depends(get_db),
    settings: GenerationSettings = Depends(get_settings),
) -> QuestionAnsweringService:
    return QuestionAnsweringService.from_settings(
        settings,
        thread_store=ThreadService(db),
        resource_store=ResourceService(db),
    )


def get_thread_service(db: Client = Depends(get_db)) -> ThreadService:
    return ThreadService(db)


def get_file_search_service(
    courses: CourseService = Depends(get_course_service),
    settings: GenerationSettings = Depends(get_settings),
) -> FileSearchStoreService:
    return FileSearchStoreService.from_settings(settings, course_service=courses)
