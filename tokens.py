"""Token counting used to decide when (and where) to chunk a file."""

import functools
import logging
import math

import tiktoken
from google import genai

from config import (
    CHARS_PER_TOKEN,
    CHUNK_THRESHOLD_RATIO,
    CONTEXT_WINDOWS,
    DEFAULT_CONTEXT_WINDOW,
    HEURISTIC_THRESHOLD_RATIO,
    Provider,
    ReviewSettings,
)

logger = logging.getLogger(__name__)

# One BPE profile for the whole OpenAI family; exact enough for a threshold
ENCODING_NAME = "cl100k_base"


@functools.lru_cache(maxsize=1)
def get_encoding() -> tiktoken.Encoding:
    """Return the shared tiktoken encoding (loaded once per process)."""
    return tiktoken.get_encoding(ENCODING_NAME)


def heuristic_count(text: str) -> int:
    """Rough count: one token per four characters, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def context_window(model: str) -> int:
    """Context window of *model*, conservative default for unknown models."""
    return CONTEXT_WINDOWS.get(model, DEFAULT_CONTEXT_WINDOW)


def chunk_token_limit(model: str, exact: bool = True) -> int:
    """Largest token count a file or chunk may have before it is split."""
    ratio = CHUNK_THRESHOLD_RATIO if exact else HEURISTIC_THRESHOLD_RATIO
    return int(context_window(model) * ratio)


class TokenEstimator:
    """Counts tokens for one model for the duration of a review run.

    OpenAI models are counted locally with tiktoken. Gemini models are
    counted by the API when a key is available; without one, or once the
    counting endpoint has failed, the character heuristic is used and
    ``exact`` turns False.
    """

    def __init__(self, provider: Provider, model: str, api_key: str | None = None):
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self._client: genai.Client | None = None
        self._exact = provider is Provider.OPENAI or bool(api_key)

    @classmethod
    def for_settings(cls, settings: ReviewSettings) -> "TokenEstimator":
        api_key = None if settings.use_mock else settings.api_key
        return cls(settings.provider, settings.model, api_key)

    @property
    def exact(self) -> bool:
        return self._exact

    def chunk_limit(self) -> int:
        return chunk_token_limit(self.model, self._exact)

    async def estimate(self, text: str) -> int:
        if not text:
            return 0
        if self.provider is Provider.OPENAI:
            return len(get_encoding().encode(text, disallowed_special=()))
        if not self._exact:
            return heuristic_count(text)
        return await self._count_with_gemini(text)

    async def _count_with_gemini(self, text: str) -> int:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        try:
            response = await self._client.aio.models.count_tokens(
                model=self.model, contents=text
            )
        except Exception as e:
            logger.warning(
                "Gemini token counting failed (%s); falling back to estimates", e
            )
            self._exact = False
            return heuristic_count(text)
        return response.total_tokens or 0
