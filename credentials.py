"""Persisted provider selection and API keys (~/.reviewlens/config.json)."""

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from config import CONFIG_DIR, Provider

logger = logging.getLogger(__name__)

# Environment variables checked when no key is stored, in order
API_KEY_ENV_VARS: dict[Provider, tuple[str, ...]] = {
    Provider.OPENAI: ("OPENAI_API_KEY",),
    Provider.GOOGLE: ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
}


class StoredConfig(BaseModel):
    """On-disk layout of the credential file."""

    provider: Provider = Provider.OPENAI
    keys: dict[str, str] = Field(default_factory=dict)


class CredentialStore:
    """Reads and writes the user's provider choice and API keys."""

    def __init__(self, path: Path | None = None):
        self.path = path or CONFIG_DIR / "config.json"

    def load(self) -> StoredConfig:
        if not self.path.exists():
            return StoredConfig()
        try:
            return StoredConfig.model_validate_json(
                self.path.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as e:
            logger.error(
                "Error reading config file %s, using defaults: %s", self.path, e
            )
            return StoredConfig()

    def save(self, config: StoredConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(config.model_dump_json(indent=2), encoding="utf-8")

    def set_api_key(self, provider: Provider, api_key: str) -> None:
        """Store *api_key* for *provider* and make it the selected provider."""
        config = self.load()
        config.provider = provider
        config.keys[provider.value] = api_key
        self.save(config)
        logger.debug("Saved %s API key to %s", provider.value, self.path)

    def get_api_key(self, provider: Provider) -> str | None:
        """Stored key first, then the provider's environment variables."""
        stored = self.load().keys.get(provider.value)
        if stored:
            return stored
        for env_var in API_KEY_ENV_VARS[provider]:
            value = os.getenv(env_var)
            if value:
                return value
        return None

    def default_provider(self) -> Provider:
        return self.load().provider
