"""
AI service module.

Usage:
    from app.services.ai import (
        GenerationClient,
        FileSearchStoreService,
        get_generation_settings,
    )

    settings = get_generation_settings()
    client = GenerationClient.from_settings(settings)
    result = await client.generate(instructions, question, search_handle=store_id)
"""

from .config import (
    normalize_base_url,
    GenerationSettings,
    get_generation_settings,
    load_generation_settings,
    ConfigError,
)
from .retry import RetryPolicy
from .clients import GenerationClient
from .file_search import FileSearchStoreService

from app.services.errors import (
    AIServiceError,
    GenerationServiceError,
    RetryExhaustedError,
    FileSearchServiceError,
)

__all__ = [
    # Config
    "normalize_base_url",
    "GenerationSettings",
    "get_generation_settings",
    "load_generation_settings",
    "ConfigError",
    # Clients
    "RetryPolicy",
    "GenerationClient",
    "FileSearchStoreService",
    # Errors
    "AIServiceError",
    "GenerationServiceError",
    "RetryExhaustedError",
    "FileSearchServiceError",
]
