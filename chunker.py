"""
Chunk splitting and re-aggregation for files too large for one request.

A file is cut into overlapping, line-aligned chunks that each fit the
model's token budget. Every chunk is reviewed separately and the partial
results are merged back into one file-level review, with line numbers
moved back into the original file's coordinates.
"""

import logging
from typing import Protocol

from config import CHUNK_OVERLAP_LINES
from models import LIST_SECTIONS, Chunk, UnitOutcome, average_score

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Review completed for large file."


class Estimator(Protocol):
    async def estimate(self, text: str) -> int: ...


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------
async def split_into_chunks(
    content: str,
    estimator: Estimator,
    max_tokens: int,
    overlap_lines: int = CHUNK_OVERLAP_LINES,
) -> list[Chunk]:
    """
    Split file content into token-bounded chunks.

    Lines are accumulated until the next one would push the running token
    count over *max_tokens*. The closed chunk's last *overlap_lines* lines
    seed the next chunk so the model keeps some context across the
    boundary; seed lines are dropped from the front while the seed plus the
    incoming line would still be over budget. Lines are never split, so a
    single oversized line ends up alone in its chunk.

    Args:
        content: Raw file text
        estimator: Token counter for the target model
        max_tokens: Token budget per chunk
        overlap_lines: Lines carried over from the previous chunk

    Returns:
        Chunks in file order; ``start_line`` is 1-based
    """
    lines = content.split("\n")
    chunks: list[Chunk] = []

    current: list[str] = []
    current_counts: list[int] = []
    current_tokens = 0

    for index, line in enumerate(lines):
        line_tokens = await estimator.estimate(line + "\n")

        if current and current_tokens + line_tokens > max_tokens:
            chunks.append(
                Chunk(content="\n".join(current), start_line=index - len(current) + 1)
            )

            keep = min(overlap_lines, len(current))
            seed = current[len(current) - keep :]
            seed_counts = current_counts[len(current) - keep :]
            while seed and sum(seed_counts) + line_tokens > max_tokens:
                seed = seed[1:]
                seed_counts = seed_counts[1:]

            current, current_counts = seed, seed_counts
            current_tokens = (
                await estimator.estimate("\n".join(current)) if current else 0
            )

        current.append(line)
        current_counts.append(line_tokens)
        current_tokens += line_tokens

    chunks.append(
        Chunk(content="\n".join(current), start_line=len(lines) - len(current) + 1)
    )
    logger.debug("Split %d lines into %d chunk(s)", len(lines), len(chunks))
    return chunks


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------
def _shift_item(item, offset: int):
    if not isinstance(item, dict):
        return item
    line = item.get("line")
    if isinstance(line, str) and line.strip().isdigit():
        line = int(line)
    elif isinstance(line, float) and line.is_integer():
        line = int(line)
    if isinstance(line, bool) or not isinstance(line, int) or line <= 0:
        return item
    return {**item, "line": line + offset}


def shift_line_numbers(data: dict, offset: int) -> dict:
    """Return a copy of *data* with every list entry's ``line`` moved by *offset*."""
    return {
        key: [_shift_item(item, offset) for item in value]
        if isinstance(value, list)
        else value
        for key, value in data.items()
    }


def aggregate_chunk_results(
    outcomes: list[UnitOutcome | None],
    chunks: list[Chunk],
) -> dict:
    """
    Merge per-chunk results into one file-level review body.

    *outcomes* lines up with *chunks*; ``None`` marks a chunk whose request
    failed outright and contributes nothing. Recovered outcomes (unparseable
    output replaced by ``{}``) still count towards the score average.
    """
    if len(outcomes) != len(chunks):
        raise ValueError(
            f"Got {len(outcomes)} chunk result(s) for {len(chunks)} chunk(s)"
        )

    merged: dict = {section: [] for section in LIST_SECTIONS}
    scores: list = []
    summaries: list[str] = []
    parse_failures = 0

    for number, (outcome, chunk) in enumerate(zip(outcomes, chunks), 1):
        if outcome is None:
            continue
        if outcome.recovered:
            parse_failures += 1

        data = shift_line_numbers(outcome.data, chunk.start_line - 1)
        for section in LIST_SECTIONS:
            entries = data.get(section)
            if isinstance(entries, list):
                merged[section].extend(entries)

        scores.append(data.get("score"))
        summary = data.get("summary") or data.get("headline")
        if summary:
            summaries.append(f"Chunk {number}: {summary}")

    merged["score"] = average_score(scores)
    merged["summary"] = "; ".join(summaries) or FALLBACK_SUMMARY
    merged["parse_failures"] = parse_failures
    return merged
