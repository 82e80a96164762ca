"""
ReviewLens Agent - LangGraph workflow for one complete review run.

The graph reviews files strictly one after another: ``review_next_file``
loops until every input file has been handled, then the run either ends
(single-file review) or moves on to ``summarize`` for the cross-file score
and executive summary.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from langgraph.graph import END, START, StateGraph

from config import ReviewSettings
from llm_client import ModelInvoker, create_invoker
from models import FileReview, ReviewResult, SourceFile, average_score
from prompts import ReviewMode, select_mode
from reviewer import CodeReviewer
from tokens import TokenEstimator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

NO_FILES_SUMMARY = "No files were reviewed."


# =============================================================================
# STATE DEFINITION
# =============================================================================
@dataclass
class ReviewState:
    """
    State that flows through the review graph.

    Each node returns updates to specific fields; LangGraph merges them.
    """

    # Input (required)
    files: list[SourceFile]
    mode: ReviewMode = ReviewMode.STANDARD

    # Progress through the file list
    position: int = 0

    # Results
    file_reviews: list[FileReview] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)  # provider failures
    score: int | None = None
    summary: str | None = None


# =============================================================================
# DECISION FUNCTIONS (for conditional edges)
# =============================================================================
def next_step(state: ReviewState) -> str:
    """
    Decide what happens after the current position.

    Returns:
        "review_next_file" while files remain
        "end" once done with a single-file review (no score or summary)
        "summarize" once done otherwise
    """
    if state.position < len(state.files):
        return "review_next_file"
    if state.mode is ReviewMode.SINGLE_FILE:
        return "end"
    return "summarize"


# =============================================================================
# GRAPH CONSTRUCTION
# =============================================================================
def build_review_graph(
    reviewer: CodeReviewer,
    on_progress: ProgressCallback | None = None,
) -> StateGraph:
    """Build the review workflow graph around *reviewer*."""

    async def review_next_file(state: ReviewState) -> dict:
        """
        Review the file at ``position``.

        Reads: files, position, file_reviews, skipped_files
        Updates: position, file_reviews, skipped_files
        """
        total = len(state.files)
        done = state.position + 1
        file = state.files[state.position]
        logger.info("🔍 Reviewing %s [%d/%d]...", file.path, done, total)

        file_reviews = list(state.file_reviews)
        skipped_files = list(state.skipped_files)
        try:
            review = await reviewer.review_file(file)
        except Exception as e:
            logger.error("   ❌ Error reviewing file %s: %s", file.path, e)
            skipped_files.append(file.path)
        else:
            file_reviews.append(review)
            logger.info(
                "   Found %d finding(s) in %s", len(review.all_findings()), file.path
            )

        if on_progress is not None:
            on_progress(done, total)

        return {
            "position": done,
            "file_reviews": file_reviews,
            "skipped_files": skipped_files,
        }

    async def summarize(state: ReviewState) -> dict:
        """
        Cross-file aggregation.

        Reads: file_reviews
        Updates: score, summary
        """
        if not state.file_reviews:
            return {"score": 0, "summary": NO_FILES_SUMMARY}

        logger.info("📝 Generating executive summary...")
        score = average_score([review.score for review in state.file_reviews])
        summary = await reviewer.generate_overall_summary(state.file_reviews)
        return {"score": score, "summary": summary}

    graph = StateGraph(ReviewState)

    graph.add_node("review_next_file", review_next_file)
    graph.add_node("summarize", summarize)

    routes = {
        "review_next_file": "review_next_file",
        "summarize": "summarize",
        "end": END,
    }
    graph.add_conditional_edges(START, next_step, routes)
    graph.add_conditional_edges("review_next_file", next_step, routes)
    graph.add_edge("summarize", END)

    return graph


def create_agent(reviewer: CodeReviewer, on_progress: ProgressCallback | None = None):
    """Create and compile the review agent."""
    return build_review_graph(reviewer, on_progress).compile()


# =============================================================================
# ENTRY POINT
# =============================================================================
async def perform_review(
    files: Sequence[SourceFile],
    settings: ReviewSettings,
    *,
    is_single_file: bool = False,
    is_diff_review: bool = False,
    on_progress: ProgressCallback | None = None,
    invoker: ModelInvoker | None = None,
    estimator: TokenEstimator | None = None,
) -> ReviewResult:
    """
    Review *files* and aggregate the results.

    Args:
        files: Files to review, in report order
        settings: Model, credential and prompt configuration for the run
        is_single_file: Omit score and summary from the result
        is_diff_review: Review changes (takes precedence over single-file)
        on_progress: Called as ``on_progress(done, total)`` after every file
        invoker: Pre-built model invoker (defaults to one for *settings*)
        estimator: Pre-built token estimator (defaults to one for *settings*)

    Returns:
        ReviewResult with one FileReview per successfully reviewed file

    Raises:
        MissingCredentialError: before any file is touched, if the
            provider's API key is not configured
    """
    if not settings.use_mock:
        settings.require_api_key()

    invoker = invoker or create_invoker(settings)
    estimator = estimator or TokenEstimator.for_settings(settings)
    mode = select_mode(is_single_file, is_diff_review)
    reviewer = CodeReviewer(invoker, estimator, mode, settings.custom_prompt)

    logger.info(
        "🤖 Reviewing %d file(s) with %s (%s mode)",
        len(files),
        settings.model,
        mode.value,
    )
    agent = create_agent(reviewer, on_progress)
    final_state = await agent.ainvoke(
        ReviewState(files=list(files), mode=mode),
        config={"recursion_limit": len(files) + 10},
    )

    return ReviewResult(
        files=final_state["file_reviews"],
        score=final_state.get("score"),
        summary=final_state.get("summary"),
        review_type="diff" if is_diff_review else "standard",
        skipped_files=final_state["skipped_files"],
    )
