"""Data models for review input, findings and aggregated results."""

import math
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_validator,
    model_serializer,
)

ReviewType = Literal["standard", "diff"]

# Keys of a FileReview body that hold lists of line-anchored entries
FINDING_SECTIONS: tuple[str, ...] = (
    "dangers",
    "issues",
    "suggestions",
    "good_practices",
)
LIST_SECTIONS: tuple[str, ...] = FINDING_SECTIONS + ("fix",)


# ---------------------------------------------------------------------------
# Score helpers
# ---------------------------------------------------------------------------
def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def coerce_score(value: Any) -> int:
    """Turn whatever the model sent as a score into an int in [0, 100]."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    return max(0, min(100, round_half_up(number)))


def average_score(scores: list[Any]) -> int:
    """Mean of *scores* (missing treated as 0), rounded; 0 for no scores."""
    if not scores:
        return 0
    total = sum(coerce_score(s) for s in scores)
    return max(0, min(100, round_half_up(total / len(scores))))


def _drop_none(data: dict, keys: tuple[str, ...]) -> dict:
    for key in keys:
        if key in data and data[key] is None:
            del data[key]
    return data


def _coerce_line(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------
class SourceFile(BaseModel):
    """A file handed to the reviewer by discovery, git or GitHub."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Relative path, stable identifier")
    content: str = Field(description="Raw file text")
    diff: str | None = Field(
        default=None, description="Unified diff when reviewing a change set"
    )


# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------
class Finding(BaseModel):
    """A single reviewer observation (danger, issue, suggestion, good practice)."""

    line: int | None = Field(default=None, description="1-based line in the file")
    description: str = Field(default="", description="Single sentence")
    author: str | None = Field(
        default=None, description="Attached afterwards by git blame"
    )

    @field_validator("line", mode="before")
    @classmethod
    def parse_line(cls, value: Any) -> int | None:
        return _coerce_line(value)

    @field_validator("description", mode="before")
    @classmethod
    def parse_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @model_serializer(mode="wrap")
    def omit_missing_author(self, handler: SerializerFunctionWrapHandler) -> dict:
        return _drop_none(handler(self), ("author",))


class Fix(BaseModel):
    """A proposed change, formatted as a diff snippet."""

    line: int | None = None
    explanation: str = ""
    code: str = Field(default="", description="Lines prefixed with '+' / '-'")

    @field_validator("line", mode="before")
    @classmethod
    def parse_line(cls, value: Any) -> int | None:
        return _coerce_line(value)

    @field_validator("explanation", "code", mode="before")
    @classmethod
    def parse_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class FileReview(BaseModel):
    """All findings for one file."""

    path: str
    dangers: list[Finding] = Field(default_factory=list)
    issues: list[Finding] = Field(default_factory=list)
    suggestions: list[Finding] = Field(default_factory=list)
    good_practices: list[Finding] = Field(default_factory=list)
    fix: list[Fix] = Field(default_factory=list)
    score: int | None = None
    summary: str | None = Field(
        default=None,
        validation_alias=AliasChoices("summary", "headline"),
    )
    diff: str | None = None
    parse_failures: int = Field(
        default=0,
        description="Units of this file whose model output could not be parsed",
    )

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, value: Any) -> int | None:
        if value is None:
            return None
        return coerce_score(value)

    @field_validator(*LIST_SECTIONS, mode="before")
    @classmethod
    def drop_junk_entries(cls, value: Any) -> list:
        # Models occasionally send null or a bare string instead of a list.
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, BaseModel))]

    @model_serializer(mode="wrap")
    def omit_missing_scores(self, handler: SerializerFunctionWrapHandler) -> dict:
        return _drop_none(handler(self), ("score", "summary"))

    def all_findings(self) -> list[Finding]:
        return self.dangers + self.issues + self.suggestions + self.good_practices


class ReviewResult(BaseModel):
    """Aggregated output of one review run."""

    model_config = ConfigDict(populate_by_name=True)

    files: list[FileReview] = Field(default_factory=list)
    score: int | None = None
    summary: str | None = None
    review_type: ReviewType = Field(default="standard", alias="reviewType")
    skipped_files: list[str] = Field(default_factory=list)

    @model_serializer(mode="wrap")
    def omit_missing_scores(self, handler: SerializerFunctionWrapHandler) -> dict:
        # Single-file runs carry no score or summary; those keys stay absent
        return _drop_none(handler(self), ("score", "summary"))

    def to_dict(self) -> dict:
        """Serialise for JSON output with the ``reviewType`` key."""
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Transient processing types
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Chunk:
    """A token-bounded slice of one file."""

    content: str
    start_line: int  # 1-based line of the original file


@dataclass
class UnitOutcome:
    """Parsed model output for one unit of work (a whole file or one chunk).

    ``parse_error`` is set when the response could not be parsed and ``data``
    was replaced by an empty result, so callers can tell a clean empty
    review from a recovered one.
    """

    label: str
    data: dict = field(default_factory=dict)
    parse_error: str | None = None

    @property
    def recovered(self) -> bool:
        return self.parse_error is not None
