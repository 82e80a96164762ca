"""GitHub API client: pull request files in, review report out."""

import os
import logging
import functools
from collections.abc import Iterable

from github import Auth, Github
from github.GithubException import GithubException, UnknownObjectException

from config import validate_repo
from models import SourceFile
from scanner import ALLOWED_EXTENSIONS, should_review_file

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cached GitHub client
# ---------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_github_client() -> Github:
    """Create or return a cached GitHub client."""
    token = os.getenv("GITHUB_TOKEN")
    if not token:
        raise ValueError(
            "GITHUB_TOKEN not found. Set it in .env file.\n"
            "Get your token at: https://github.com/settings/tokens"
        )
    return Github(auth=Auth.Token(token))


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    return data.get("message", str(e))


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------
def fetch_pr_files(
    repo: str,
    pr_number: int,
    extensions: Iterable[str] = ALLOWED_EXTENSIONS,
    ignore: Iterable[str] = (),
) -> list[SourceFile]:
    """
    Fetch the changed source files of a PR for a diff review.

    Content is taken at the PR's head commit; ``diff`` is GitHub's patch
    for the file. Removed files and non-source files are skipped.

    Args:
        repo: Repository in "owner/repo" format
        pr_number: Pull request number

    Returns:
        SourceFile objects in the order GitHub lists them

    Raises:
        ValueError: If PR not found or access denied
    """
    repo = validate_repo(repo)
    client = get_github_client()

    try:
        repository = client.get_repo(repo)
        pr = repository.get_pull(pr_number)
        head_sha = pr.head.sha

        files: list[SourceFile] = []
        for changed in pr.get_files():
            if changed.status == "removed" or not changed.patch:
                continue
            if not should_review_file(changed.filename, extensions, ignore):
                continue
            try:
                contents = repository.get_contents(changed.filename, ref=head_sha)
            except UnknownObjectException:
                logger.warning("Skipping %s: not found at %s", changed.filename, head_sha)
                continue
            files.append(
                SourceFile(
                    path=changed.filename,
                    content=contents.decoded_content.decode("utf-8", errors="replace"),
                    diff=changed.patch,
                )
            )

        logger.info("Fetched %d file(s) from %s PR #%d", len(files), repo, pr_number)
        return files

    except GithubException as e:
        if e.status == 404:
            raise ValueError(f"PR #{pr_number} not found in {repo}") from e
        raise ValueError(f"GitHub API error: {_error_message(e)}") from e


# ---------------------------------------------------------------------------
# Write operations
# ---------------------------------------------------------------------------
def post_pr_comment(repo: str, pr_number: int, body: str) -> int:
    """
    Post the review report as a PR conversation comment.

    Args:
        repo: Repository in "owner/repo" format
        pr_number: Pull request number
        body: Comment text (markdown)

    Returns:
        Comment ID

    Raises:
        ValueError: If posting fails
    """
    repo = validate_repo(repo)
    client = get_github_client()

    try:
        repository = client.get_repo(repo)
        pr = repository.get_pull(pr_number)
        comment = pr.create_issue_comment(body)
        logger.info("Posted comment %d on PR #%d", comment.id, pr_number)
        return comment.id

    except GithubException as e:
        raise ValueError(f"Failed to post comment: {_error_message(e)}") from e
