"""Shared configuration and utilities for ReviewLens."""

import asyncio
import enum
import functools
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv

from errors import MalformedResponseError, MissingCredentialError

# ---------------------------------------------------------------------------
# Environment & logging (initialised once on first import)
# ---------------------------------------------------------------------------
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------
class Provider(str, enum.Enum):
    """LLM vendor families the reviewer can talk to."""

    OPENAI = "openai"
    GOOGLE = "google"


# Models whose name starts with this prefix are served by Google
GOOGLE_MODEL_PREFIX = "gemini"


def resolve_provider(model: str) -> Provider:
    """Map a model identifier to the provider that serves it."""
    if model.lower().startswith(GOOGLE_MODEL_PREFIX):
        return Provider.GOOGLE
    return Provider.OPENAI


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
USE_MOCK: bool = os.getenv("USE_MOCK", "false").lower() == "true"

DEFAULT_MODELS: dict[Provider, str] = {
    Provider.OPENAI: "gpt-4o",
    Provider.GOOGLE: "gemini-2.5-flash-lite",
}
DEFAULT_MODEL: str = DEFAULT_MODELS[Provider.OPENAI]

# Context window (tokens) per model
CONTEXT_WINDOWS: dict[str, int] = {
    "gpt-4o": 128000,
    "gpt-4o-mini": 128000,
    "gpt-4-turbo": 128000,
    "gpt-4": 8192,
    "gpt-3.5-turbo": 16385,
    "gemini-2.5-pro": 1048576,
    "gemini-2.5-flash": 1048576,
    "gemini-2.5-flash-lite": 1048576,
    "gemini-1.5-pro-latest": 1048576,
    "gemini-1.0-pro": 30720,
}
DEFAULT_CONTEXT_WINDOW = 2048

# Share of the context window a file may use before it gets chunked.
# The lower ratio applies when token counts come from the character heuristic.
CHUNK_THRESHOLD_RATIO = 0.9
HEURISTIC_THRESHOLD_RATIO = 0.8

CHUNK_OVERLAP_LINES = 50
CHARS_PER_TOKEN = 4

CONFIG_DIR = Path.home() / ".reviewlens"
PROJECT_CONFIG_FILENAME = ".reviewlens.json"
_PROJECT_MARKERS = (".git", "pyproject.toml", "package.json")

# Repo format: "owner/repo"
_REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def validate_repo(repo: str) -> str:
    """Validate repository string matches 'owner/repo' format.

    Returns *repo* unchanged on success; raises ``ValueError`` otherwise.
    """
    if not _REPO_PATTERN.match(repo):
        raise ValueError(
            f"Invalid repo format: {repo!r}. Expected 'owner/repo' "
            f"(e.g. 'octocat/hello-world')."
        )
    return repo


# ---------------------------------------------------------------------------
# Retry decorator
# ---------------------------------------------------------------------------
def with_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable: tuple[type[Exception], ...] = (Exception,),
    should_retry: Callable[[Exception], bool] | None = None,
):
    """Decorator: retry a coroutine function with exponential back-off.

    *should_retry*, when given, narrows *retryable*: a caught exception it
    rejects is raised at once.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            last_exc: Exception | None = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except retryable as exc:
                    if should_retry is not None and not should_retry(exc):
                        raise
                    last_exc = exc
                    if attempt < max_retries - 1:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Attempt %d/%d for %s failed: %s. Retrying in %.1fs…",
                            attempt + 1,
                            max_retries,
                            func.__name__,
                            exc,
                            delay,
                        )
                        await asyncio.sleep(delay)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Run settings
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ReviewSettings:
    """Everything a review run needs to know, resolved up front.

    The provider is derived from the model name once, here, and threaded
    through the rest of the pipeline from this object.
    """

    model: str = DEFAULT_MODEL
    api_key: str | None = None
    custom_prompt: str | None = None
    use_mock: bool = USE_MOCK
    provider: Provider = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider", resolve_provider(self.model))

    @classmethod
    def from_store(cls, model: str, store, **kwargs) -> "ReviewSettings":
        """Build settings, looking the API key up in a credential store."""
        provider = resolve_provider(model)
        return cls(model=model, api_key=store.get_api_key(provider), **kwargs)

    def require_api_key(self) -> str:
        """Return the API key or fail with ``MissingCredentialError``."""
        if not self.api_key:
            raise MissingCredentialError(self.provider.value)
        return self.api_key


# ---------------------------------------------------------------------------
# Project configuration (.reviewlens.json)
# ---------------------------------------------------------------------------
def find_project_root(start: Path) -> Path | None:
    """Walk up from *start* to the nearest directory that looks like a project."""
    directory = start.resolve()
    for candidate in (directory, *directory.parents):
        if any((candidate / marker).exists() for marker in _PROJECT_MARKERS):
            return candidate
    return None


def load_project_config(start: Path | None = None) -> dict:
    """Load ``.reviewlens.json`` from the project root, or ``{}``."""
    root = find_project_root(start or Path.cwd())
    if root is None:
        return {}

    config_file = root / PROJECT_CONFIG_FILENAME
    if not config_file.is_file():
        return {}

    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Could not read %s: %s", config_file, e)
        return {}

    if not isinstance(data, dict):
        logger.error("%s must contain a JSON object", config_file)
        return {}
    return data


def resolve_profile(project_config: dict, profile: str | None) -> dict:
    """Merge the named profile over the top-level project options."""
    options = {k: v for k, v in project_config.items() if k != "profiles"}
    if not profile:
        return options

    profiles = project_config.get("profiles") or {}
    if profile not in profiles:
        available = ", ".join(sorted(profiles)) or "none"
        raise ValueError(
            f"Unknown profile {profile!r} (available: {available})"
        )
    options.update(profiles[profile])
    return options


# ---------------------------------------------------------------------------
# LLM response parsing
# ---------------------------------------------------------------------------
def parse_llm_json(text: str) -> dict:
    """Extract the JSON object spanning the first '{' to the last '}' in *text*.

    Models wrap JSON in markdown fences or add commentary despite being asked
    not to, so everything outside that span is ignored.

    Raises:
        MalformedResponseError: no object could be located or decoded
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise MalformedResponseError("No JSON object found in LLM response")

    try:
        obj = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        logger.debug("Raw response: %s", text)
        raise MalformedResponseError(f"JSON decode error: {e}") from e

    if not isinstance(obj, dict):
        raise MalformedResponseError("LLM response JSON is not an object")
    return obj
