"""
Model client for answer generation.

The client:
- uses the AsyncOpenAI SDK (Responses API)
- attaches the course's vector store through the file_search tool
- reports the retrieved chunks as grounding fragments
- retries through an explicit RetryPolicy; SDK-internal retries are disabled
"""

import logging
from typing import Any, List, Optional

import httpx
from openai import (
    AsyncOpenAI,
    APIStatusError,
    APIConnectionError,
    APITimeoutError,
)

from app.services.ai.config import (
    DEFAULT_MAX_SEARCH_RESULTS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    GenerationSettings,
)
from app.services.ai.retry import RetryPolicy
from app.services.errors import GenerationServiceError, handle_openai_error
from app.services.forum_qa.models import GenerationResult, GroundingFragment

logger = logging.getLogger(__name__)

# Network settings
DEFAULT_TIMEOUT = httpx.Timeout(90.0, connect=30.0)

FILE_SEARCH_RESULTS_INCLUDE = "file_search_call.results"


def _get(obj: Any, name: str, default: Any = None) -> Any:
    """Attribute or key access, SDK models and plain dicts alike."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def extract_grounding_fragments(response: Any) -> List[GroundingFragment]:
    """Retrieved chunk texts from every file_search_call output item."""
    fragments: List[GroundingFragment] = []
    for item in _get(response, "output", None) or []:
        if _get(item, "type") != "file_search_call":
            continue
        for result in _get(item, "results", None) or []:
            text = _get(result, "text")
            if text:
                fragments.append(GroundingFragment(text=text, filename=_get(result, "filename")))
    return fragments


def extract_output_text(response: Any) -> str:
    """Concatenated output_text parts of the response's message items."""
    text = _get(response, "output_text", None)
    if text:
        return text

    parts = []
    for item in _get(response, "output", None) or []:
        if _get(item, "type") != "message":
            continue
        for content in _get(item, "content", None) or []:
            if _get(content, "type") == "output_text" and _get(content, "text"):
                parts.append(_get(content, "text"))
    return "".join(parts)


class GenerationClient:
    """
    Answer generation client.

    Usage:
        client = GenerationClient.from_settings(get_generation_settings())
        result = await client.generate(instructions, question, search_handle=store_id)
        result.text, result.grounding_fragments
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_search_results: int = DEFAULT_MAX_SEARCH_RESULTS,
        retry_policy: Optional[RetryPolicy] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Args:
            api_key: API key
            api_base: Normalized base URL (ending in /v1), None for the default
            model: Model name
            temperature: Sampling temperature
            max_search_results: file_search results per call
            retry_policy: Retry policy, defaults to 3 attempts / 0.5s backoff
            client: Preconfigured AsyncOpenAI client
        """
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=api_base,
            timeout=DEFAULT_TIMEOUT,
            max_retries=0,
        )
        self.model = model
        self.temperature = temperature
        self.max_search_results = max_search_results
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_settings(
        cls,
        settings: GenerationSettings,
        client: Optional[AsyncOpenAI] = None,
    ) -> "GenerationClient":
        return cls(
            api_key=settings.api_key,
            api_base=settings.base_url,
            model=settings.model,
            temperature=settings.temperature,
            max_search_results=settings.max_search_results,
            retry_policy=RetryPolicy(
                max_attempts=settings.max_attempts,
                base_delay=settings.backoff_seconds,
            ),
            client=client,
        )

    def _build_request(
        self,
        instructions: str,
        question: str,
        search_handle: Optional[str],
    ) -> dict:
        request = {
            "model": self.model,
            "instructions": instructions,
            "input": question,
            "temperature": self.temperature,
        }
        if search_handle:
            request["tools"] = [
                {
                    "type": "file_search",
                    "vector_store_ids": [search_handle],
                    "max_num_results": self.max_search_results,
                }
            ]
            request["include"] = [FILE_SEARCH_RESULTS_INCLUDE]
        return request

    async def _create_once(self, request: dict, log_tag: Optional[str]) -> Any:
        try:
            return await self._client.responses.create(**request)
        except (APIStatusError, APIConnectionError, APITimeoutError) as e:
            raise handle_openai_error(
                e, "answer generation", GenerationServiceError,
                context={"model": self.model, "log_tag": log_tag}
            ) from e
        except GenerationServiceError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error in answer generation: {type(e).__name__}: {e}")
            raise GenerationServiceError(f"Answer generation failed: {type(e).__name__}") from e

    async def generate(
        self,
        instructions: str,
        question: str,
        search_handle: Optional[str] = None,
        log_tag: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate an answer, grounded in the course's vector store when given.

        Args:
            instructions: System instructions
            question: User message (question plus forum context)
            search_handle: Vector store id of the course, None to skip retrieval
            log_tag: Label used in log lines

        Returns:
            GenerationResult with the text and the retrieved fragments

        Raises:
            GenerationServiceError: fatal failure
            RetryExhaustedError: transient failures on every attempt
        """
        if not search_handle:
            logger.warning(f"No document-search store for {log_tag}; generating without retrieval")

        request = self._build_request(instructions, question, search_handle)
        logger.debug(f"Generating answer for {log_tag} with model={self.model}")

        response = await self.retry_policy.run(
            lambda: self._create_once(request, log_tag),
            description="answer generation",
            log_tag=log_tag,
        )

        text = extract_output_text(response)
        fragments = extract_grounding_fragments(response)

        if search_handle and not fragments:
            logger.warning(f"No grounding chunks returned for {log_tag}")
        else:
            logger.info(f"Generated answer for {log_tag}: {len(fragments)} grounding chunks")

        return GenerationResult(text=text, grounding_fragments=tuple(fragments))
