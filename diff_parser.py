"""Parser for unified diff format using unidiff library."""

from collections.abc import Iterable
from dataclasses import dataclass

from unidiff import PatchSet

from scanner import ALLOWED_EXTENSIONS, should_review_file


@dataclass
class FileDiff:
    """Parsed diff for a single file."""
    filename: str
    status: str                           # added, deleted, modified, renamed
    additions: int                        # count of added lines
    deletions: int                        # count of deleted lines
    patch: str = ""                       # this file's part of the diff


def parse_diff(diff_text: str) -> list[FileDiff]:
    """
    Split a unified diff into one FileDiff per file.

    Args:
        diff_text: Raw unified diff string (e.g. ``git diff`` output)

    Returns:
        List of FileDiff objects, in diff order
    """
    patch_set = PatchSet(diff_text)
    files = []

    for patched_file in patch_set:
        if patched_file.is_added_file:
            status = "added"
        elif patched_file.is_removed_file:
            status = "deleted"
        elif patched_file.is_rename:
            status = "renamed"
        else:
            status = "modified"

        files.append(FileDiff(
            filename=patched_file.path,
            status=status,
            additions=patched_file.added,
            deletions=patched_file.removed,
            patch=str(patched_file),
        ))

    return files


def filter_files(
    files: list[FileDiff],
    extensions: Iterable[str] = ALLOWED_EXTENSIONS,
    ignore: Iterable[str] = (),
) -> list[FileDiff]:
    """Drop deleted, unchanged and non-source files."""
    result = []

    for file in files:
        if file.status == 'deleted':
            continue
        if file.additions + file.deletions == 0:
            continue
        if not should_review_file(file.filename, extensions, ignore):
            continue
        result.append(file)

    return result
