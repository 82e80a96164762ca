"""Prompt templates for code review and the executive summary."""

import enum


class ReviewMode(str, enum.Enum):
    """Which system instruction a review run uses."""

    STANDARD = "standard"
    SINGLE_FILE = "single_file"
    DIFF = "diff"


# =============================================================================
# SHARED BLOCKS — reused by the review prompts
# =============================================================================

_STYLE = (
    "- Be direct and technical. No conversational fluff.\n"
    "- Every description must be a single, concise sentence.\n"
    "- Line numbers refer to the code you are shown, starting at 1.\n"
)

_DANGER_RULES = (
    "- dangers: ONLY verified, real risks (security holes, data loss, crashes).\n"
    "  Omit the section entirely unless you can point at the exact line and\n"
    "  explain how it fails. Do NOT report theoretical or speculative\n"
    "  security issues: reading secrets from environment variables, HTTPS\n"
    "  URLs, test fixtures and parameterised queries are NOT dangers.\n"
)

_FINDING_RULES = (
    "- issues: notable problems likely to cause bugs or performance trouble.\n"
    "- suggestions: optional improvements.\n"
)

_GOOD_PRACTICE_RULES = "- good_practices: positive highlights worth keeping.\n"

_FIX_RULES = (
    "- fix: one entry per danger/issue. 'code' must be a diff containing ONLY\n"
    "  the changed lines, removed lines prefixed with '-' and added lines\n"
    "  prefixed with '+'. No unchanged context lines.\n"
)

_SCORE_RULES = (
    "- score: an integer from 0 to 100 for the overall quality.\n"
    "- summary: a technical summary of the code's state. The higher the score,\n"
    "  the shorter the summary: one sentence above 80, a short paragraph\n"
    "  below 50.\n"
)

_OUTPUT_RULES = (
    "Respond with ONLY a single valid JSON object. "
    "No markdown, no explanation, no text outside the object.\n"
)

_FINDING = '{"line": 42, "description": "One-sentence description."}'
_FIX = (
    '{"line": 50, "explanation": "Very brief explanation.", '
    '"code": "- old line\\n+ new line"}'
)


def _format(*sections: str) -> str:
    lines = ",\n".join(f'  "{name}": {example}' for name, example in sections)
    return "Required format:\n{\n" + lines + "\n}\n"


# =============================================================================
# STANDARD — multi-file review with score and summary
# =============================================================================

STANDARD_PROMPT = (
    "You are a senior software architect performing a code review.\n"
    "\n"
    + _STYLE
    + "\n"
    "Section rules:\n"
    + _DANGER_RULES
    + _FINDING_RULES
    + _GOOD_PRACTICE_RULES
    + _FIX_RULES
    + _SCORE_RULES
    + "\n"
    + _OUTPUT_RULES
    + _format(
        ("dangers", f"[{_FINDING}]"),
        ("issues", f"[{_FINDING}]"),
        ("suggestions", f"[{_FINDING}]"),
        ("good_practices", f"[{_FINDING}]"),
        ("fix", f"[{_FIX}]"),
        ("score", "85"),
        ("summary", '"One-sentence technical summary."'),
    )
)


# =============================================================================
# SINGLE FILE — findings only, no score or summary
# =============================================================================

SINGLE_FILE_PROMPT = (
    "You are a senior software architect reviewing a single file.\n"
    "\n"
    + _STYLE
    + "- Do NOT include a score or a summary field.\n"
    "\n"
    "Section rules:\n"
    + _DANGER_RULES
    + _FINDING_RULES
    + _GOOD_PRACTICE_RULES
    + _FIX_RULES
    + "\n"
    + _OUTPUT_RULES
    + _format(
        ("dangers", f"[{_FINDING}]"),
        ("issues", f"[{_FINDING}]"),
        ("suggestions", f"[{_FINDING}]"),
        ("good_practices", f"[{_FINDING}]"),
        ("fix", f"[{_FIX}]"),
    )
)


# =============================================================================
# DIFF — pull request review, no good_practices
# =============================================================================

DIFF_PROMPT = (
    "You are a senior software architect reviewing a pull request.\n"
    "\n"
    "- Focus ONLY on the implications of the code changes shown.\n"
    "- Do NOT flag pre-existing code unless the change makes it riskier.\n"
    + _STYLE
    + "- Do NOT include a good_practices field.\n"
    "\n"
    "Section rules:\n"
    + _DANGER_RULES
    + _FINDING_RULES
    + _FIX_RULES
    + _SCORE_RULES
    + "\n"
    + _OUTPUT_RULES
    + _format(
        ("dangers", f"[{_FINDING}]"),
        ("issues", f"[{_FINDING}]"),
        ("suggestions", f"[{_FINDING}]"),
        ("fix", f"[{_FIX}]"),
        ("score", "85"),
        ("summary", '"One-sentence technical summary of the changes."'),
    )
)


# =============================================================================
# EXECUTIVE SUMMARY — plain text across all files
# =============================================================================

SUMMARY_PROMPT = (
    "You are a CTO reading a code analysis report. "
    "Write a high-level executive summary from the file summaries provided.\n"
    "\n"
    "- Start with a single sentence overview.\n"
    "- Then give a bulleted list of the most critical themes, risks "
    "and required actions.\n"
    "- Be concise and direct. Do not use conversational language.\n"
)

_PROMPTS: dict[ReviewMode, str] = {
    ReviewMode.STANDARD: STANDARD_PROMPT,
    ReviewMode.SINGLE_FILE: SINGLE_FILE_PROMPT,
    ReviewMode.DIFF: DIFF_PROMPT,
}


# =============================================================================
# Selection & user prompts
# =============================================================================
def select_mode(is_single_file: bool, is_diff_review: bool) -> ReviewMode:
    """Diff review wins over single-file, which wins over standard."""
    if is_diff_review:
        return ReviewMode.DIFF
    if is_single_file:
        return ReviewMode.SINGLE_FILE
    return ReviewMode.STANDARD


def select_prompt(mode: ReviewMode, custom_prompt: str | None = None) -> str:
    """Return the system instruction for *mode*, or the user's own prompt."""
    if custom_prompt:
        return custom_prompt
    return _PROMPTS[mode]


def build_file_prompt(path: str, content: str, diff: str | None = None) -> str:
    prompt = f"Please review the following code from file: {path}\n\n{content}"
    if diff:
        prompt += f"\n\nChanges under review (unified diff):\n{diff}"
    return prompt


def build_chunk_prompt(
    path: str, content: str, number: int, total: int, start_line: int
) -> str:
    return (
        f"This is chunk {number}/{total} of the file {path}. "
        f"Please review the following code snippet which starts at line "
        f"{start_line} of the file. Report line numbers relative to the "
        f"snippet (its first line is line 1).\n\n{content}"
    )


def build_summary_prompt(file_summaries: list[tuple[str, str]]) -> str:
    listing = "\n\n".join(
        f"File: {path}\nSummary: {summary}" for path, summary in file_summaries
    )
    return f"File Summaries:\n\n{listing}"
