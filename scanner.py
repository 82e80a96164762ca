"""File discovery: turn a path into the list of source files to review."""

import fnmatch
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from errors import DiscoveryError
from models import SourceFile

logger = logging.getLogger(__name__)

# Source file extensions reviewed by default
ALLOWED_EXTENSIONS = {
    '.js', '.jsx', '.ts', '.tsx', '.py', '.rb', '.go', '.java', '.cs',
}

SKIP_DIRECTORIES = {
    'node_modules', 'vendor', 'dist', 'build', '.git', '__pycache__', '.venv',
}

# Always skipped, whatever the extension allow-list says
SKIP_SUFFIXES = ('.min.js', '.min.css', '.map')


def _matches_any(path: str, patterns: Iterable[str]) -> bool:
    name = path.rsplit('/', 1)[-1]
    return any(
        fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(name, pattern)
        for pattern in patterns
    )


def should_review_file(
    filename: str,
    extensions: Iterable[str] = ALLOWED_EXTENSIONS,
    ignore: Iterable[str] = (),
) -> bool:
    """Check if a (relative, '/'-separated) path should be reviewed."""
    parts = filename.split('/')
    if any(part in SKIP_DIRECTORIES for part in parts[:-1]):
        return False

    lowered = filename.lower()
    if lowered.endswith(SKIP_SUFFIXES):
        return False

    if _matches_any(filename, ignore):
        return False

    return os.path.splitext(lowered)[1] in set(extensions)


def _read_source(full_path: Path, base: Path) -> SourceFile | None:
    try:
        content = full_path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read file %s: %s", full_path, e)
        return None
    relative = os.path.relpath(full_path, base).replace(os.sep, '/')
    return SourceFile(path=relative, content=content)


def scan_directory(
    directory: Path,
    base: Path | None = None,
    extensions: Iterable[str] = ALLOWED_EXTENSIONS,
    ignore: Iterable[str] = (),
) -> list[SourceFile]:
    """
    Recursively collect reviewable files under *directory*.

    Args:
        directory: Directory to walk
        base: Paths are reported relative to this (default: cwd)
        extensions: Allowed file extensions (with the leading dot)
        ignore: Glob patterns matched against relative path and file name

    Returns:
        Files in a stable, sorted order
    """
    base = base or Path.cwd()
    extensions = {ext.lower() for ext in extensions}
    ignore = list(ignore)
    files: list[SourceFile] = []

    for root, dirnames, filenames in os.walk(directory):
        # Prune in place so os.walk never descends into skipped directories
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in SKIP_DIRECTORIES
            and not _matches_any(
                os.path.relpath(os.path.join(root, d), directory).replace(os.sep, '/'),
                ignore,
            )
        )
        for filename in sorted(filenames):
            full_path = Path(root) / filename
            relative = os.path.relpath(full_path, directory).replace(os.sep, '/')
            if not should_review_file(relative, extensions, ignore):
                continue
            source = _read_source(full_path, base)
            if source is not None:
                files.append(source)

    return files


def get_code_content(
    review_path: str | Path,
    base: Path | None = None,
    extensions: Iterable[str] = ALLOWED_EXTENSIONS,
    ignore: Iterable[str] = (),
) -> list[SourceFile]:
    """
    Resolve a file or directory into source files.

    Raises:
        DiscoveryError: path missing, or a single file of an unsupported type
    """
    path = Path(review_path).resolve()
    base = base or Path.cwd()

    if not path.exists():
        raise DiscoveryError(f"Path does not exist: {path}")

    if path.is_dir():
        return scan_directory(path, base, extensions, ignore)

    if path.is_file():
        extension = path.suffix.lower()
        if extension not in {ext.lower() for ext in extensions}:
            raise DiscoveryError(f"Unsupported file type: {extension or path.name}")
        source = _read_source(path, base)
        if source is None:
            raise DiscoveryError(f"Could not read file: {path}")
        return [source]

    raise DiscoveryError(f"Path is not a file or directory: {path}")
