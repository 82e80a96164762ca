"""Render a ReviewResult as a markdown or JSON report."""

import json

from models import FileReview, Finding, Fix, ReviewResult

SECTION_TITLES = (
    ("dangers", "🛑 Dangers"),
    ("issues", "⚠️ Issues"),
    ("suggestions", "💡 Suggestions"),
    ("good_practices", "✅ Good Practices"),
)


def _line_label(line: int | None) -> str:
    return f"Line {line}" if line else "Line N/A"


def format_section(title: str, items: list[Finding]) -> list[str]:
    """Markdown bullets for one findings section; nothing when empty."""
    if not items:
        return []
    lines = [f"### {title}"]
    for item in items:
        author = f" by {item.author}" if item.author else ""
        lines.append(f"- {item.description} ({_line_label(item.line)}{author})")
    lines.append("")
    return lines


def format_fixes(items: list[Fix]) -> list[str]:
    if not items:
        return []
    lines = ["### 🛠️ Fixes"]
    for item in items:
        lines.append(f"- **{item.explanation}** ({_line_label(item.line)})")
        lines.append("```diff")
        lines.append(item.code)
        lines.append("```")
    lines.append("")
    return lines


def format_file_review(file_review: FileReview) -> list[str]:
    lines = ["", f"## 📄 File: {file_review.path}"]

    if file_review.score is not None and file_review.summary:
        lines.append(f"**Score: {file_review.score}/100** | *{file_review.summary}*")
    lines.append("")

    for section, title in SECTION_TITLES:
        lines.extend(format_section(title, getattr(file_review, section)))
    lines.extend(format_fixes(file_review.fix))

    if file_review.parse_failures:
        lines.append(
            f"> ⚠️ {file_review.parse_failures} part(s) of this file returned "
            "an unreadable response and were skipped."
        )
        lines.append("")

    if not file_review.all_findings() and not file_review.fix:
        lines.append("✅ No issues found")
        lines.append("")

    return lines


def generate_markdown_report(result: ReviewResult) -> str:
    """Format the whole review as markdown, in file order."""
    lines = ["# Code Review Report", ""]

    if result.score is not None:
        lines.append(f"## 📊 Overall Quality Score: {result.score}/100")
        lines.append("")

    if result.summary:
        lines.append("## 📝 Executive Summary")
        lines.append("")
        lines.append(result.summary)
        lines.append("")

    if not result.files:
        lines.append("_No files were reviewed._")
        lines.append("")

    for file_review in result.files:
        lines.extend(format_file_review(file_review))

    if result.skipped_files:
        lines.append("## ⏭️ Skipped Files")
        lines.append("")
        lines.extend(f"- {path}" for path in result.skipped_files)
        lines.append("")

    return "\n".join(lines)


def generate_json_report(result: ReviewResult) -> str:
    return json.dumps(result.to_dict(), indent=2)


def render_report(result: ReviewResult, output: str = "markdown") -> str:
    """Render *result* in the requested output format."""
    if output == "json":
        return generate_json_report(result)
    return generate_markdown_report(result)
