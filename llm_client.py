"""
Model invokers: send a system prompt plus user content to a provider.

Reviewers talk to the ``ModelInvoker`` interface, never to an SDK
directly. One invoker (and one SDK client) is created per review run.
"""

import logging
from abc import ABC, abstractmethod

import openai
from google import genai
from google.genai import errors as genai_errors

from config import Provider, ReviewSettings, with_retry
from errors import TransientInvocationError
from mock_data import MOCK_RESPONSE, MOCK_SUMMARY

logger = logging.getLogger(__name__)

# Provider errors worth retrying (transient / rate-limit)
_RETRYABLE_GEMINI_ERRORS: tuple[type[Exception], ...] = (
    genai_errors.ServerError,
    genai_errors.ClientError,
)
_RETRYABLE_OPENAI_ERRORS: tuple[type[Exception], ...] = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def _is_retryable_gemini_error(exc: Exception) -> bool:
    # Of the 4xx errors only 429 (quota / rate limit) clears up by itself
    if isinstance(exc, genai_errors.ClientError):
        return exc.code == 429
    return True


class ModelInvoker(ABC):
    """Interface every provider adapter implements."""

    name = "model"

    def __init__(self, model: str):
        self.model = model

    async def invoke(
        self, system_prompt: str, user_prompt: str, *, json_output: bool = True
    ) -> str:
        """Return the raw text of the model's reply.

        Raises:
            TransientInvocationError: the provider call failed after retries
        """
        try:
            return await self._generate(system_prompt, user_prompt, json_output)
        except Exception as e:
            raise TransientInvocationError(
                f"{self.name} request to {self.model} failed: {e}"
            ) from e

    @abstractmethod
    async def _generate(
        self, system_prompt: str, user_prompt: str, json_output: bool
    ) -> str:
        """Provider-specific request."""


class GeminiInvoker(ModelInvoker):
    """Google Gemini: system and user text go out as one content sequence."""

    name = "Gemini"

    def __init__(self, model: str, api_key: str):
        super().__init__(model)
        self.client = genai.Client(api_key=api_key)

    @with_retry(
        max_retries=3,
        base_delay=2.0,
        retryable=_RETRYABLE_GEMINI_ERRORS,
        should_retry=_is_retryable_gemini_error,
    )
    async def _generate(
        self, system_prompt: str, user_prompt: str, json_output: bool
    ) -> str:
        config = {"response_mime_type": "application/json"} if json_output else None
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=[system_prompt, user_prompt],
            config=config,
        )
        return response.text or ""


class OpenAIInvoker(ModelInvoker):
    """OpenAI chat completions with separate system/user roles."""

    name = "OpenAI"

    def __init__(self, model: str, api_key: str):
        super().__init__(model)
        self.client = openai.AsyncOpenAI(api_key=api_key)

    @with_retry(max_retries=3, base_delay=2.0, retryable=_RETRYABLE_OPENAI_ERRORS)
    async def _generate(
        self, system_prompt: str, user_prompt: str, json_output: bool
    ) -> str:
        kwargs = {"response_format": {"type": "json_object"}} if json_output else {}
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            **kwargs,
        )
        return response.choices[0].message.content or ""


class MockInvoker(ModelInvoker):
    """Offline stand-in that replays canned responses."""

    name = "Mock"

    def __init__(self, model: str):
        super().__init__(model)
        self.calls: list[tuple[str, str]] = []

    async def _generate(
        self, system_prompt: str, user_prompt: str, json_output: bool
    ) -> str:
        self.calls.append((system_prompt, user_prompt))
        return MOCK_RESPONSE if json_output else MOCK_SUMMARY


def create_invoker(settings: ReviewSettings) -> ModelInvoker:
    """Build the invoker for the run's provider.

    Raises:
        MissingCredentialError: no API key for the provider
    """
    if settings.use_mock:
        logger.info("[MOCK MODE - No API calls will be made]")
        return MockInvoker(settings.model)

    api_key = settings.require_api_key()
    if settings.provider is Provider.GOOGLE:
        return GeminiInvoker(settings.model, api_key)
    return OpenAIInvoker(settings.model, api_key)
