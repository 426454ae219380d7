import pytest
from openai import BadRequestError, RateLimitError

from conftest import make_status_error

from app.services.ai.clients import (
    FILE_SEARCH_RESULTS_INCLUDE,
    GenerationClient,
    extract_grounding_fragments,
    extract_output_text,
)
from app.services.ai.config import GenerationSettings
from app.services.ai.retry import RetryPolicy
from app.services.errors import GenerationServiceError, RetryExhaustedError


def response_with(text, chunks=()):
    output = []
    if chunks:
        output.append({
            "type": "file_search_call",
            "results": [{"text": c, "filename": "syllabus.pdf"} for c in chunks],
        })
    output.append({
        "type": "message",
        "content": [{"type": "output_text", "text": text}],
    })
    return {"output": output}


class FakeResponses:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeOpenAI:
    def __init__(self, outcomes):
        self.responses = FakeResponses(outcomes)


async def no_sleep(delay):
    return None


def make_client(outcomes, **kwargs):
    fake = FakeOpenAI(outcomes)
    client = GenerationClient(
        model="test-model",
        temperature=0.1,
        max_search_results=4,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5, sleep=no_sleep),
        client=fake,
        **kwargs,
    )
    return client, fake.responses


@pytest.mark.asyncio
async def test_generate_attaches_document_search():
    client, responses = make_client([response_with("Week 8.", ["midterm is in week 8"])])

    result = await client.generate("instructions", "question", search_handle="vs_123")

    request = responses.requests[0]
    assert request["model"] == "test-model"
    assert request["instructions"] == "instructions"
    assert request["input"] == "question"
    assert request["temperature"] == 0.1
    assert request["tools"] == [
        {"type": "file_search", "vector_store_ids": ["vs_123"], "max_num_results": 4}
    ]
    assert request["include"] == [FILE_SEARCH_RESULTS_INCLUDE]
    assert result.text == "Week 8."
    assert [f.text for f in result.grounding_fragments] == ["midterm is in week 8"]


@pytest.mark.asyncio
async def test_generate_without_handle_skips_retrieval():
    client, responses = make_client([response_with("General answer.")])

    result = await client.generate("instructions", "question")

    assert "tools" not in responses.requests[0]
    assert "include" not in responses.requests[0]
    assert result.grounding_fragments == ()


@pytest.mark.asyncio
async def test_generate_retries_rate_limits():
    client, responses = make_client([
        make_status_error(RateLimitError, 429),
        response_with("Recovered."),
    ])

    result = await client.generate("i", "q", search_handle="vs_1")

    assert result.text == "Recovered."
    assert len(responses.requests) == 2


@pytest.mark.asyncio
async def test_generate_gives_up_after_max_attempts():
    client, responses = make_client([make_status_error(RateLimitError, 429) for _ in range(3)])

    with pytest.raises(RetryExhaustedError) as exc_info:
        await client.generate("i", "q", search_handle="vs_1")

    assert exc_info.value.attempts == 3
    assert len(responses.requests) == 3


@pytest.mark.asyncio
async def test_generate_does_not_retry_rejected_requests():
    client, responses = make_client([make_status_error(BadRequestError, 400)])

    with pytest.raises(GenerationServiceError) as exc_info:
        await client.generate("i", "q", search_handle="vs_1")

    assert not isinstance(exc_info.value, RetryExhaustedError)
    assert exc_info.value.status_code == 400
    assert len(responses.requests) == 1


def test_output_text_prefers_sdk_convenience_property():
    assert extract_output_text({"output_text": "direct", "output": []}) == "direct"
    assert extract_output_text(response_with("from parts")) == "from parts"
    assert extract_output_text({}) == ""


def test_grounding_fragments_skip_empty_results():
    response = {"output": [{"type": "file_search_call", "results": [{"text": ""}, {"text": "a"}]}]}
    assert [f.text for f in extract_grounding_fragments(response)] == ["a"]


def test_from_settings_copies_retry_configuration():
    settings = GenerationSettings(api_key="sk-test", max_attempts=5, backoff_seconds=2.0)
    client = GenerationClient.from_settings(settings, client=FakeOpenAI([]))

    assert client.retry_policy.max_attempts == 5
    assert client.retry_policy.base_delay == 2.0
    assert client.model == settings.model
