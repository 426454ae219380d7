"""
Supabase client configuration.

Two clients:
1. get_supabase_client(access_token) - API requests (RLS applies)
2. get_service_client() - background work and Celery workers (bypasses RLS)
"""

import os
from functools import lru_cache

from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")


def get_supabase_client(access_token: str | None = None) -> Client:
    """
    Get a Supabase client.

    Args:
        access_token: The caller's JWT (optional)

    Returns:
        Supabase Client instance; with a token, PostgREST runs as that user
    """
    client = create_client(SUPABASE_URL, SUPABASE_ANON_KEY)
    if access_token:
        client.postgrest.auth(access_token)
    return client


@lru_cache(maxsize=1)
def get_service_client() -> Client:
    """
    Get the Service Role client (bypasses RLS), one instance per process.

    Used where the caller's row-level permissions are not enough, such as
    writing model-generated replies and uploading resource files.
    """
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
