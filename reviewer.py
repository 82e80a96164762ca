"""Per-file review: estimate, review directly or in chunks, build a FileReview."""

import logging

from pydantic import ValidationError

from chunker import aggregate_chunk_results, split_into_chunks
from config import parse_llm_json
from errors import MalformedResponseError, TransientInvocationError
from llm_client import ModelInvoker
from models import FileReview, SourceFile, UnitOutcome
from prompts import (
    SUMMARY_PROMPT,
    ReviewMode,
    build_chunk_prompt,
    build_file_prompt,
    build_summary_prompt,
    select_prompt,
)
from tokens import TokenEstimator

logger = logging.getLogger(__name__)

SUMMARY_UNAVAILABLE = "Could not generate an overall summary."
NO_SUMMARY = "No summary provided."


class CodeReviewer:
    """
    Reviews files one at a time against a single model.

    The invoker and estimator are created once per run and shared by every
    file and chunk reviewed through this object.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        estimator: TokenEstimator,
        mode: ReviewMode = ReviewMode.STANDARD,
        custom_prompt: str | None = None,
    ):
        self.invoker = invoker
        self.estimator = estimator
        self.mode = mode
        self.system_prompt = select_prompt(mode, custom_prompt)

    # ------------------------------------------------------------------
    # Units of work
    # ------------------------------------------------------------------
    async def review_unit(self, user_prompt: str, label: str) -> UnitOutcome:
        """
        Send one prompt and parse the reply.

        Unparseable output is not fatal: the outcome comes back empty and
        flagged as recovered. Provider failures propagate as
        ``TransientInvocationError``.
        """
        text = await self.invoker.invoke(self.system_prompt, user_prompt)
        try:
            data = parse_llm_json(text)
        except MalformedResponseError as e:
            logger.error("Failed to parse JSON for %s: %s", label, e)
            return UnitOutcome(label=label, parse_error=str(e))
        return UnitOutcome(label=label, data=data)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    async def review_file(self, file: SourceFile) -> FileReview:
        """Review *file*, splitting it first when it exceeds the token budget."""
        total_tokens = await self.estimator.estimate(file.content)
        limit = self.estimator.chunk_limit()

        if total_tokens > limit:
            logger.info(
                "  File %s is large (%d tokens), splitting into chunks...",
                file.path,
                total_tokens,
            )
            body = await self._review_chunked(file, limit)
        else:
            body = await self._review_direct(file)

        return self._build_file_review(file, body)

    async def _review_direct(self, file: SourceFile) -> dict:
        diff = file.diff if self.mode is ReviewMode.DIFF else None
        prompt = build_file_prompt(file.path, file.content, diff)
        outcome = await self.review_unit(prompt, file.path)
        return {**outcome.data, "parse_failures": int(outcome.recovered)}

    async def _review_chunked(self, file: SourceFile, limit: int) -> dict:
        chunks = await split_into_chunks(file.content, self.estimator, limit)
        outcomes: list[UnitOutcome | None] = []

        for number, chunk in enumerate(chunks, 1):
            label = f"chunk {number}/{len(chunks)} of {file.path}"
            logger.info("  - Reviewing chunk %d/%d...", number, len(chunks))
            prompt = build_chunk_prompt(
                file.path, chunk.content, number, len(chunks), chunk.start_line
            )
            try:
                outcomes.append(await self.review_unit(prompt, label))
            except TransientInvocationError as e:
                logger.error("Error reviewing %s: %s", label, e)
                outcomes.append(None)

        return aggregate_chunk_results(outcomes, chunks)

    def _build_file_review(self, file: SourceFile, body: dict) -> FileReview:
        body = {k: v for k, v in body.items() if k not in ("path", "diff")}

        if self.mode is ReviewMode.SINGLE_FILE:
            for key in ("score", "summary", "headline"):
                body.pop(key, None)
        elif self.mode is ReviewMode.DIFF and body.get("good_practices"):
            logger.debug("Dropping good_practices from diff review of %s", file.path)
            body["good_practices"] = []

        try:
            return FileReview.model_validate(
                {**body, "path": file.path, "diff": file.diff}
            )
        except ValidationError as e:
            logger.error("Unexpected review structure for %s: %s", file.path, e)
            return FileReview(
                path=file.path,
                diff=file.diff,
                parse_failures=int(body.get("parse_failures") or 0) + 1,
            )

    # ------------------------------------------------------------------
    # Cross-file
    # ------------------------------------------------------------------
    async def generate_overall_summary(self, file_reviews: list[FileReview]) -> str:
        """Ask the model for an executive summary across all reviewed files."""
        file_summaries = [
            (review.path, review.summary or NO_SUMMARY) for review in file_reviews
        ]
        try:
            text = await self.invoker.invoke(
                SUMMARY_PROMPT,
                build_summary_prompt(file_summaries),
                json_output=False,
            )
        except TransientInvocationError as e:
            logger.error("Failed to generate overall summary: %s", e)
            return SUMMARY_UNAVAILABLE
        return text.strip() or SUMMARY_UNAVAILABLE
