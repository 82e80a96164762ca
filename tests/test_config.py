"""Tests for settings, project config, retry and LLM JSON parsing."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from config import (
    Provider,
    ReviewSettings,
    find_project_root,
    load_project_config,
    parse_llm_json,
    resolve_profile,
    resolve_provider,
    validate_repo,
    with_retry,
)
from credentials import CredentialStore
from errors import MalformedResponseError, MissingCredentialError


class TestResolveProvider:
    def test_gemini_models_are_google(self):
        assert resolve_provider("gemini-2.5-flash") is Provider.GOOGLE
        assert resolve_provider("Gemini-1.5-pro-latest") is Provider.GOOGLE

    def test_everything_else_is_openai(self):
        assert resolve_provider("gpt-4o") is Provider.OPENAI
        assert resolve_provider("some-unknown-model") is Provider.OPENAI


class TestReviewSettings:
    def test_provider_derived_from_model(self):
        settings = ReviewSettings(model="gemini-2.5-pro", api_key="k", use_mock=False)
        assert settings.provider is Provider.GOOGLE

    def test_require_api_key_raises_when_missing(self):
        settings = ReviewSettings(model="gpt-4o", api_key=None, use_mock=False)
        with pytest.raises(MissingCredentialError) as exc_info:
            settings.require_api_key()
        assert exc_info.value.provider == "openai"
        assert "Openai API key not found" in str(exc_info.value)

    def test_from_store_looks_up_key_for_model_provider(self, tmp_path):
        store = CredentialStore(tmp_path / "config.json")
        store.set_api_key(Provider.GOOGLE, "g-key")

        settings = ReviewSettings.from_store("gemini-2.5-flash", store, use_mock=False)

        assert settings.api_key == "g-key"
        assert settings.provider is Provider.GOOGLE

    def test_settings_are_frozen(self, settings):
        with pytest.raises(AttributeError):
            settings.model = "gpt-4"


class TestParseLlmJson:
    def test_fenced_json_with_chatter(self):
        """Text around a fenced object is ignored."""
        raw = 'Sure! ```json\n{"issues":[]}\n```'
        assert parse_llm_json(raw) == {"issues": []}

    def test_plain_object(self):
        assert parse_llm_json('{"score": 90}') == {"score": 90}

    def test_nested_braces_inside_strings(self):
        raw = 'Here: {"summary": "uses {x}", "issues": []} done'
        assert parse_llm_json(raw) == {"summary": "uses {x}", "issues": []}

    def test_no_object_raises(self):
        with pytest.raises(MalformedResponseError):
            parse_llm_json("I could not review this file.")

    def test_invalid_json_raises(self):
        with pytest.raises(MalformedResponseError):
            parse_llm_json('{"issues": [,]}')

    def test_empty_text_raises(self):
        with pytest.raises(MalformedResponseError):
            parse_llm_json("")


class TestProjectConfig:
    def test_find_project_root_walks_up(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("")
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)
        assert find_project_root(nested) == tmp_path.resolve()

    def test_load_project_config(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".reviewlens.json").write_text(json.dumps({"model": "gpt-4"}))
        assert load_project_config(tmp_path) == {"model": "gpt-4"}

    def test_corrupt_project_config_gives_empty(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".reviewlens.json").write_text("{not json")
        assert load_project_config(tmp_path) == {}

    def test_missing_project_config_gives_empty(self, tmp_path):
        (tmp_path / ".git").mkdir()
        assert load_project_config(tmp_path) == {}

    def test_profile_overrides_top_level(self):
        project = {
            "model": "gpt-4o",
            "blame": False,
            "profiles": {"strict": {"model": "gpt-4", "blame": True}},
        }
        assert resolve_profile(project, "strict") == {"model": "gpt-4", "blame": True}

    def test_no_profile_drops_profiles_key(self):
        project = {"model": "gpt-4o", "profiles": {"x": {}}}
        assert resolve_profile(project, None) == {"model": "gpt-4o"}

    def test_unknown_profile_raises(self):
        with pytest.raises(ValueError, match="Unknown profile"):
            resolve_profile({"profiles": {"fast": {}}}, "slow")


class TestValidateRepo:
    def test_valid(self):
        assert validate_repo("octocat/hello-world") == "octocat/hello-world"

    @pytest.mark.parametrize("repo", ["octocat", "a/b/c", "", "owner/ repo"])
    def test_invalid(self, repo):
        with pytest.raises(ValueError):
            validate_repo(repo)


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = AsyncMock(side_effect=[ConnectionError("boom"), "ok"])

        @with_retry(max_retries=3, base_delay=0.5, retryable=(ConnectionError,))
        async def flaky():
            return await calls()

        with patch("config.asyncio.sleep", new=AsyncMock()) as sleep:
            assert await flaky() == "ok"

        assert calls.await_count == 2
        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = AsyncMock(side_effect=ConnectionError("down"))

        @with_retry(max_retries=2, base_delay=0.1, retryable=(ConnectionError,))
        async def always_fails():
            return await calls()

        with patch("config.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ConnectionError):
                await always_fails()
        assert calls.await_count == 2

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_immediately(self):
        calls = AsyncMock(side_effect=KeyError("nope"))

        @with_retry(max_retries=3, retryable=(ConnectionError,))
        async def broken():
            return await calls()

        with pytest.raises(KeyError):
            await broken()
        assert calls.await_count == 1

    @pytest.mark.asyncio
    async def test_should_retry_rejects_matching_error(self):
        calls = AsyncMock(side_effect=ConnectionError("refused"))

        @with_retry(
            max_retries=3,
            retryable=(ConnectionError,),
            should_retry=lambda exc: "reset" in str(exc),
        )
        async def refused():
            return await calls()

        with pytest.raises(ConnectionError):
            await refused()
        assert calls.await_count == 1
