"""ReviewLens command line interface."""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

from agent import perform_review
from config import (
    DEFAULT_MODELS,
    Provider,
    ReviewSettings,
    load_project_config,
    resolve_profile,
)
from credentials import CredentialStore
from errors import DiscoveryError, MissingCredentialError, TransientInvocationError
from git_client import (
    DEFAULT_BASE_REF,
    attribute_authors,
    get_blame,
    get_changed_files,
    get_repo_root,
)
from github_client import fetch_pr_files, post_pr_comment
from models import ReviewResult, SourceFile
from report import generate_markdown_report, render_report
from scanner import ALLOWED_EXTENSIONS, get_code_content

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("markdown", "json")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reviewlens",
        description="AI-driven code review for files, directories, git changes and PRs.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    review_parser = subparsers.add_parser("review", help="Perform an AI code review.")
    target = review_parser.add_mutually_exclusive_group()
    target.add_argument("--path", help="Directory (or file) to scan")
    target.add_argument("--file", help="Single file to review (no score or summary)")
    target.add_argument(
        "--diff",
        action="store_true",
        help="Review files changed since --base in the local git repository",
    )
    target.add_argument("--github-repo", metavar="OWNER/REPO", help="Review a GitHub PR")
    review_parser.add_argument(
        "--base",
        default=DEFAULT_BASE_REF,
        help=f"Git ref to diff against with --diff (default: {DEFAULT_BASE_REF})",
    )
    review_parser.add_argument("--pr", type=int, help="PR number for --github-repo")
    review_parser.add_argument("--model", help="Model to use, e.g. gpt-4o or gemini-2.5-flash")
    review_parser.add_argument(
        "--output", choices=OUTPUT_FORMATS, help="Report format (default: markdown)"
    )
    review_parser.add_argument("--output-file", help="Write the report to this file")
    review_parser.add_argument("--prompt", help="File holding a custom system prompt")
    review_parser.add_argument("--profile", help="Profile from .reviewlens.json")
    review_parser.add_argument(
        "--blame",
        action="store_true",
        default=None,
        help="Attribute findings to authors via git blame",
    )
    review_parser.add_argument(
        "--post-comment",
        action="store_true",
        help="Post the markdown report on the PR (with --github-repo)",
    )
    review_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    configure_parser = subparsers.add_parser(
        "configure", help="Store your AI provider and API key."
    )
    configure_parser.add_argument(
        "--provider",
        required=True,
        choices=[p.value for p in Provider],
        help="AI provider to use by default",
    )
    configure_parser.add_argument(
        "--api-key", help="API key (prompted for when omitted)"
    )

    return parser


def _normalize_extensions(extensions) -> set[str]:
    if not extensions:
        return set(ALLOWED_EXTENSIONS)
    if isinstance(extensions, str):
        extensions = [extensions]
    return {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions}


# =============================================================================
# REVIEW COMMAND
# =============================================================================
def collect_files(args: argparse.Namespace, options: dict) -> list[SourceFile]:
    """Resolve the review target into source files."""
    extensions = _normalize_extensions(options.get("extensions"))
    ignore = options.get("ignore") or []

    if args.github_repo:
        return fetch_pr_files(args.github_repo, args.pr, extensions, ignore)
    if args.diff:
        return get_changed_files(args.base, extensions=extensions, ignore=ignore)
    return get_code_content(args.file or args.path, extensions=extensions, ignore=ignore)


def _read_prompt(prompt_path: str | None) -> str | None:
    if not prompt_path:
        return None
    try:
        return Path(prompt_path).read_text(encoding="utf-8")
    except OSError as e:
        raise DiscoveryError(f"Could not read prompt file {prompt_path}: {e}") from e


def _attribute_blame(result: ReviewResult, is_diff: bool) -> None:
    # Diff paths are relative to the repository root, scanned paths to cwd
    start = get_repo_root() if is_diff else None
    logger.info("👤 Attributing authorship...")
    attribute_authors(result, lambda path: get_blame(path, start=start))


def _write_output(report: str, output_file: str | None) -> None:
    if output_file:
        path = Path(output_file).resolve()
        path.write_text(report, encoding="utf-8")
        logger.info("✅ Report saved to %s", path)
    else:
        print(report)


def review_command(args: argparse.Namespace, store: CredentialStore) -> int:
    if not (args.path or args.file or args.diff or args.github_repo):
        logger.error(
            "A review target is required. Use --path, --file, --diff or --github-repo."
        )
        return 2
    if args.github_repo and args.pr is None:
        logger.error("--github-repo requires --pr")
        return 2
    if args.post_comment and not args.github_repo:
        logger.error("--post-comment requires --github-repo and --pr")
        return 2

    try:
        options = resolve_profile(load_project_config(), args.profile)
    except ValueError as e:
        logger.error("%s", e)
        return 1

    model = args.model or options.get("model") or DEFAULT_MODELS[store.default_provider()]
    output = args.output or options.get("output") or "markdown"
    blame = args.blame if args.blame is not None else bool(options.get("blame"))
    is_diff_review = bool(args.diff or args.github_repo)

    try:
        settings = ReviewSettings.from_store(
            model,
            store,
            custom_prompt=_read_prompt(args.prompt or options.get("prompt")),
        )
        if not settings.use_mock:
            settings.require_api_key()

        files = collect_files(args, options)
        if not files:
            logger.warning("No supported files found to review.")
            return 0

        def on_progress(done: int, total: int) -> None:
            logger.info("📊 Progress: [%d/%d]", done, total)

        result = asyncio.run(
            perform_review(
                files,
                settings,
                is_single_file=bool(args.file),
                is_diff_review=is_diff_review,
                on_progress=on_progress,
            )
        )
    except (MissingCredentialError, DiscoveryError, ValueError) as e:
        logger.error("%s", e)
        return 1
    except TransientInvocationError as e:
        logger.error("Review failed: %s", e)
        return 1

    logger.info("✅ Review complete!")

    if blame and not args.github_repo:
        _attribute_blame(result, is_diff=bool(args.diff))

    _write_output(render_report(result, output), args.output_file)

    if args.post_comment:
        try:
            post_pr_comment(args.github_repo, args.pr, generate_markdown_report(result))
        except ValueError as e:
            logger.error("%s", e)
            return 1

    return 0


# =============================================================================
# CONFIGURE COMMAND
# =============================================================================
def configure_command(args: argparse.Namespace, store: CredentialStore) -> int:
    provider = Provider(args.provider)
    api_key = args.api_key or getpass.getpass(f"Enter your {provider.value} API key: ")
    api_key = api_key.strip()
    if not api_key:
        logger.error("API key cannot be empty.")
        return 1

    store.set_api_key(provider, api_key)
    logger.info(
        "✅ Configuration saved. Default model: %s", DEFAULT_MODELS[provider]
    )
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================
def main(argv: list[str] | None = None, store: CredentialStore | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    store = store or CredentialStore()

    if getattr(args, "verbose", False):
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "configure":
        return configure_command(args, store)
    return review_command(args, store)


if __name__ == "__main__":
    sys.exit(main())
