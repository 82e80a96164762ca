"""Tests for the command line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from config import Provider
from credentials import CredentialStore
from main import _normalize_extensions, build_parser, main
from models import FileReview, Finding, ReviewResult


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path / "home" / "config.json")


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """A project directory holding one source file, used as cwd."""
    project = tmp_path / "project"
    project.mkdir()
    (project / ".git").mkdir()
    (project / "app.py").write_text("def main():\n    return 1\n")
    monkeypatch.chdir(project)
    return project


def fake_result(**overrides):
    fields = {
        "files": [
            FileReview(
                path="app.py",
                issues=[Finding(line=2, description="Magic number.")],
                score=88,
                summary="Fine.",
            )
        ],
        "score": 88,
        "summary": "Healthy.",
    }
    fields.update(overrides)
    return ReviewResult(**fields)


class TestParser:
    def test_review_options(self):
        args = build_parser().parse_args(
            ["review", "--diff", "--base", "main", "--output", "json", "--blame"]
        )
        assert args.diff is True
        assert args.base == "main"
        assert args.output == "json"
        assert args.blame is True

    def test_targets_are_mutually_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["review", "--path", ".", "--diff"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestNormalizeExtensions:
    def test_list_entries_lowercased_and_dotted(self):
        assert _normalize_extensions([".TS", "go"]) == {".ts", ".go"}

    def test_single_string_is_one_extension(self):
        assert _normalize_extensions("py") == {".py"}

    def test_empty_falls_back_to_defaults(self):
        assert ".py" in _normalize_extensions(None)


class TestConfigure:
    def test_saves_key_and_provider(self, store):
        assert main(["configure", "--provider", "google", "--api-key", "g-1"], store) == 0
        assert store.default_provider() is Provider.GOOGLE
        assert store.get_api_key(Provider.GOOGLE) == "g-1"

    def test_prompts_for_key(self, store):
        with patch("main.getpass.getpass", return_value="sk-typed"):
            assert main(["configure", "--provider", "openai"], store) == 0
        assert store.get_api_key(Provider.OPENAI) == "sk-typed"

    def test_empty_key_rejected(self, store):
        with patch("main.getpass.getpass", return_value="  "):
            assert main(["configure", "--provider", "openai"], store) == 1


class TestReview:
    def test_target_required(self, store, workspace):
        assert main(["review"], store) == 2

    def test_missing_credentials(self, store, workspace):
        with patch("main.perform_review", new=AsyncMock()) as review:
            assert main(["review", "--path", "."], store) == 1
        review.assert_not_called()

    def test_single_file_markdown_to_file(self, store, workspace):
        store.set_api_key(Provider.OPENAI, "sk-test")
        result = fake_result(score=None, summary=None)

        with patch("main.perform_review", new=AsyncMock(return_value=result)) as review:
            code = main(["review", "--file", "app.py", "--output-file", "out.md"], store)

        assert code == 0
        files, settings = review.await_args.args
        assert [f.path for f in files] == ["app.py"]
        assert settings.model == "gpt-4o"
        assert review.await_args.kwargs["is_single_file"] is True
        assert review.await_args.kwargs["is_diff_review"] is False
        report = (workspace / "out.md").read_text()
        assert "## 📄 File: app.py" in report
        assert "Magic number." in report

    def test_json_output_to_stdout(self, store, workspace, capsys):
        store.set_api_key(Provider.OPENAI, "sk-test")
        with patch("main.perform_review", new=AsyncMock(return_value=fake_result())):
            assert main(["review", "--path", ".", "--output", "json"], store) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["score"] == 88
        assert data["files"][0]["path"] == "app.py"

    def test_default_model_follows_stored_provider(self, store, workspace):
        store.set_api_key(Provider.GOOGLE, "g-key")
        with patch("main.perform_review", new=AsyncMock(return_value=fake_result())) as review:
            assert main(["review", "--path", "."], store) == 0
        settings = review.await_args.args[1]
        assert settings.model == "gemini-2.5-flash-lite"
        assert settings.api_key == "g-key"

    def test_profile_options_applied(self, store, workspace, capsys):
        store.set_api_key(Provider.OPENAI, "sk-test")
        (workspace / "prompt.txt").write_text("Security only.")
        (workspace / ".reviewlens.json").write_text(
            json.dumps(
                {
                    "model": "gpt-4o",
                    "profiles": {
                        "ci": {"model": "gpt-4o-mini", "output": "json", "prompt": "prompt.txt"}
                    },
                }
            )
        )
        with patch("main.perform_review", new=AsyncMock(return_value=fake_result())) as review:
            assert main(["review", "--path", ".", "--profile", "ci"], store) == 0

        settings = review.await_args.args[1]
        assert settings.model == "gpt-4o-mini"
        assert settings.custom_prompt == "Security only."
        assert json.loads(capsys.readouterr().out)["score"] == 88

    def test_unknown_profile(self, store, workspace):
        assert main(["review", "--path", ".", "--profile", "nope"], store) == 1

    def test_no_supported_files(self, store, workspace):
        store.set_api_key(Provider.OPENAI, "sk-test")
        (workspace / "app.py").unlink()
        with patch("main.perform_review", new=AsyncMock()) as review:
            assert main(["review", "--path", "."], store) == 0
        review.assert_not_called()

    def test_missing_path(self, store, workspace):
        store.set_api_key(Provider.OPENAI, "sk-test")
        assert main(["review", "--path", "missing"], store) == 1

    def test_post_comment_requires_pr(self, store, workspace):
        assert main(["review", "--path", ".", "--post-comment"], store) == 2

    def test_github_pr_review_posts_comment(self, store, workspace):
        store.set_api_key(Provider.OPENAI, "sk-test")
        pr_files = [FileReview(path="src/x.py")]
        with (
            patch("main.fetch_pr_files", return_value=["file"]) as fetch,
            patch("main.perform_review", new=AsyncMock(return_value=fake_result(files=pr_files))) as review,
            patch("main.post_pr_comment", return_value=1) as post,
        ):
            code = main(
                ["review", "--github-repo", "octo/app", "--pr", "5", "--post-comment"],
                store,
            )

        assert code == 0
        assert fetch.call_args.args[:2] == ("octo/app", 5)
        assert review.await_args.kwargs["is_diff_review"] is True
        repo, pr_number, body = post.call_args.args
        assert (repo, pr_number) == ("octo/app", 5)
        assert body.startswith("# Code Review Report")

    def test_profile_extension_given_as_string(self, store, workspace):
        store.set_api_key(Provider.OPENAI, "sk-test")
        (workspace / "util.go").write_text("package util\n")
        (workspace / ".reviewlens.json").write_text(json.dumps({"extensions": "py"}))
        with patch("main.perform_review", new=AsyncMock(return_value=fake_result())) as review:
            assert main(["review", "--path", "."], store) == 0

        files = review.await_args.args[0]
        assert [f.path for f in files] == ["app.py"]
