"""Local git integration: changed files for diff reviews, blame for authorship."""

import logging
import re
import subprocess
from collections.abc import Callable, Iterable
from pathlib import Path

from diff_parser import filter_files, parse_diff
from errors import DiscoveryError
from models import ReviewResult, SourceFile
from scanner import ALLOWED_EXTENSIONS

logger = logging.getLogger(__name__)

DEFAULT_BASE_REF = "HEAD~1"

# Sections whose findings get an author attached
BLAME_SECTIONS = ("dangers", "issues", "suggestions")

# "<sha> <original line> <final line> [<group size>]"
_BLAME_HEADER = re.compile(r"^[0-9a-f]{40,64} \d+ (\d+)(?: \d+)?$")


def _run_git(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=False,
        capture_output=True,
        text=True,
    )


def get_repo_root(start: Path | None = None) -> Path | None:
    result = _run_git(["rev-parse", "--show-toplevel"], cwd=start)
    if result.returncode != 0:
        return None
    root = result.stdout.strip()
    return Path(root) if root else None


def get_changed_files(
    base: str = DEFAULT_BASE_REF,
    start: Path | None = None,
    extensions: Iterable[str] = ALLOWED_EXTENSIONS,
    ignore: Iterable[str] = (),
) -> list[SourceFile]:
    """
    Collect files changed since *base*, with working-tree content and diff.

    Raises:
        DiscoveryError: not inside a git repository, or git diff failed
    """
    root = get_repo_root(start)
    if root is None:
        raise DiscoveryError("Not inside a git repository")

    result = _run_git(["diff", "--no-color", base], cwd=root)
    if result.returncode != 0:
        raise DiscoveryError(f"git diff {base} failed: {result.stderr.strip()}")

    files: list[SourceFile] = []
    for file_diff in filter_files(parse_diff(result.stdout), extensions, ignore):
        try:
            content = (root / file_diff.filename).read_text(encoding="utf-8")
        except FileNotFoundError:
            continue
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read file %s: %s", file_diff.filename, e)
            continue
        files.append(
            SourceFile(path=file_diff.filename, content=content, diff=file_diff.patch)
        )

    logger.info("Found %d changed file(s) since %s", len(files), base)
    return files


def parse_blame(porcelain: str) -> dict[int, str]:
    """Map final line numbers to author names from ``--line-porcelain`` output."""
    authors: dict[int, str] = {}
    current: int | None = None
    for line in porcelain.splitlines():
        header = _BLAME_HEADER.match(line)
        if header:
            current = int(header.group(1))
        elif line.startswith("author ") and current is not None:
            authors[current] = line[len("author "):]
    return authors


def get_blame(path: str, start: Path | None = None) -> dict[int, str] | None:
    """Line -> author for *path*, or None when git cannot blame it."""
    result = _run_git(["blame", "--line-porcelain", "--", path], cwd=start)
    if result.returncode != 0:
        logger.debug("git blame failed for %s: %s", path, result.stderr.strip())
        return None
    return parse_blame(result.stdout)


def attribute_authors(
    result: ReviewResult,
    blame_lookup: Callable[[str], dict[int, str] | None] = get_blame,
) -> None:
    """Attach the last author of each finding's line, in place."""
    for file_review in result.files:
        blame = blame_lookup(file_review.path)
        if not blame:
            continue
        for section in BLAME_SECTIONS:
            for finding in getattr(file_review, section):
                if finding.line in blame:
                    finding.author = blame[finding.line]
