"""Domain schemas: research, outlines, slides, drafts and presentations."""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

MIN_OUTLINE_SLIDES = 5
MAX_OUTLINE_SLIDES = 20


class SlideType(str, Enum):
    INTRO = "intro"
    CONTENT = "content"
    DATA = "data"
    QUOTE = "quote"
    CONCLUSION = "conclusion"


class CitationStyle(str, Enum):
    INLINE = "inline"
    FOOTNOTE = "footnote"
    SPEAKER_NOTES = "speaker_notes"


class Theme(str, Enum):
    MINIMAL = "minimal"
    CORPORATE = "corporate"
    BOLD = "bold"
    MODERN = "modern"
    CLASSIC = "classic"


class PresentationStatus(str, Enum):
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_PRESENTATION_STATUSES = {PresentationStatus.COMPLETED, PresentationStatus.FAILED}


def coerce_slide_type(value: Any) -> SlideType:
    """Map any value outside the slide type enum to ``content``."""
    if isinstance(value, SlideType):
        return value
    try:
        return SlideType(value)
    except ValueError:
        return SlideType.CONTENT


# =============================================================================
# Agent envelope
# =============================================================================


class AgentResponse(BaseModel, Generic[T]):
    """Result envelope returned by every generation stage."""

    success: bool
    data: T | None = None
    error: str | None = None
    token_usage: int | None = None


# =============================================================================
# Research
# =============================================================================


class Source(BaseModel):
    """A cited web source."""

    title: str
    url: str
    domain: str
    date: str | None = None


class ResearchFinding(BaseModel):
    stat: str
    context: str
    source: Source


class Framework(BaseModel):
    name: str
    description: str
    source: Source | None = None


class ResearchData(BaseModel):
    topic: str = ""
    findings: list[ResearchFinding] = Field(default_factory=list)
    frameworks: list[Framework] = Field(default_factory=list)


class PromptValidation(BaseModel):
    is_valid: bool
    warnings: list[str] = Field(default_factory=list)


class PreprocessResult(BaseModel):
    enhanced_prompt: str
    validation: PromptValidation


# =============================================================================
# Outline and slides
# =============================================================================


class OutlineSlide(BaseModel):
    """A slide stub: title, bullets and type."""

    index: int
    title: str
    bullets: list[str] = Field(default_factory=list)
    type: SlideType = SlideType.CONTENT

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        return coerce_slide_type(v)


class Outline(BaseModel):
    title: str
    slides: list[OutlineSlide]


class Citation(BaseModel):
    text: str
    source: Source


class Slide(BaseModel):
    """A fully generated presentation slide."""

    model_config = ConfigDict(populate_by_name=True)

    index: int
    title: str
    body: list[str] = Field(default_factory=list)
    speaker_notes: list[str] = Field(default_factory=list, alias="speakerNotes")
    visual_hint: str | None = Field(default=None, alias="visualHint")
    citations: list[Citation] = Field(default_factory=list)
    type: SlideType = SlideType.CONTENT

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        return coerce_slide_type(v)


class TokenUsage(BaseModel):
    preprocessor: int = 0
    research: int = 0
    outline: int = 0
    slides: int = 0
    total: int = 0


# =============================================================================
# Persisted artifacts
# =============================================================================


class Draft(BaseModel):
    """Outline-stage artifact, persisted before a presentation exists."""

    id: str
    title: str
    prompt: str
    enhanced_prompt: str | None = None
    outline: Outline
    created_at: str | None = None
    updated_at: str | None = None


class Presentation(BaseModel):
    """Final artifact holding fully generated slide bodies."""

    id: str
    user_id: str
    title: str
    prompt: str = ""
    enhanced_prompt: str | None = None
    outline: Outline
    slides: list[Slide] = Field(default_factory=list)
    citation_style: CitationStyle = CitationStyle.INLINE
    theme: Theme = Theme.MINIMAL
    status: PresentationStatus = PresentationStatus.GENERATING
    error_message: str | None = None
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    job_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_row(self) -> dict[str, Any]:
        """Serialize for storage (enum values, camelCase slide keys)."""
        return self.model_dump(mode="json", by_alias=True)
