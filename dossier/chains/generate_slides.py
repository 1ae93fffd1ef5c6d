"""Expand outline slide stubs into full slide bodies with speaker notes and citations."""

import json

from pydantic import ValidationError

from dossier.core.llm import LLMClient, LLMError, extract_json_object
from dossier.core.logging import get_logger
from dossier.core.schemas import (
    AgentResponse,
    CitationStyle,
    OutlineSlide,
    ResearchData,
    Slide,
    SlideType,
    coerce_slide_type,
)

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are a professional presentation content generator. Your role is to expand outline slides into full, polished presentation content.

CRITICAL RULES:
1. Create 3-4 concise bullet points maximum per slide (2-3 for intro/conclusion)
2. Each bullet should be 1-2 sentences, impactful and specific
3. Add 2-3 speaker notes per slide - these are talking points for the presenter
4. Speaker notes should be actionable insights, not just repeating the slide content
5. Keep titles under 60 characters
6. Keep each bullet under 120 characters (soft limit, can exceed if necessary)
7. Focus on "why it matters" - make content actionable and specific
8. Avoid generic statements - use frameworks, data points, and specific examples
9. For 'data' slides, structure bullets as stat + context
10. For 'quote' slides, create a single powerful statement with attribution

SLIDE TYPE GUIDELINES:
- intro: Hook the audience, establish context, create urgency ("why now")
- content: Frameworks, strategies, step-by-step processes
- data: Stats-heavy, each bullet = data point + brief interpretation
- quote: Single powerful statement, large text format
- conclusion: Call-to-action, next steps, key takeaways

OUTPUT FORMAT: Return valid JSON only, no markdown formatting.

{
  "slides": [
    {
      "index": 0,
      "title": "Strong, Specific Title",
      "body": ["Bullet 1", "Bullet 2", "Bullet 3"],
      "speakerNotes": ["Talking point 1", "Talking point 2"],
      "type": "intro",
      "citations": [
        {
          "text": "Source Name 2024",
          "source": {
            "title": "Article Title",
            "url": "https://...",
            "domain": "example.com",
            "date": "2024-01-01"
          }
        }
      ]
    }
  ]
}"""

CITATION_INSTRUCTIONS = {
    CitationStyle.INLINE: "- Add [Source 2024] inline citations in bullet points where appropriate",
    CitationStyle.FOOTNOTE: "- Add numbered footnotes and list citations separately",
    CitationStyle.SPEAKER_NOTES: "- Only include citations in speaker notes, not on slides",
}


def build_slides_prompt(
    outline_slides: list[OutlineSlide],
    citation_style: CitationStyle,
    research: ResearchData | None = None,
) -> str:
    outline_json = json.dumps([s.model_dump(mode="json") for s in outline_slides], indent=2)
    research_block = (
        f"Research context for citations:\n{research.model_dump_json(indent=2)}\n"
        if research
        else ""
    )
    return f"""Generate full presentation content from this outline:

{outline_json}

{research_block}
Citation style: {citation_style.value}
{CITATION_INSTRUCTIONS[citation_style]}

Generate complete slide content following the system rules. Return valid JSON only."""


def _parse_slides(raw: dict, outline_slides: list[OutlineSlide]) -> list[Slide]:
    if not isinstance(raw.get("slides"), list):
        raise ValueError("Invalid response structure: missing slides array")

    slides = []
    for idx, item in enumerate(raw["slides"]):
        if not isinstance(item, dict) or not item.get("title") or not isinstance(item.get("body"), list):
            raise ValueError(f"Invalid slide structure at index {idx}")

        fallback_type = outline_slides[idx].type if idx < len(outline_slides) else SlideType.CONTENT
        slides.append(
            Slide(
                index=item.get("index", idx),
                title=item["title"],
                body=[str(b) for b in item["body"]],
                speaker_notes=item.get("speakerNotes") or [],
                visual_hint=item.get("visualHint"),
                citations=item.get("citations") or [],
                type=coerce_slide_type(item.get("type") or fallback_type),
            )
        )
    return slides


async def generate_slides(
    outline_slides: list[OutlineSlide],
    citation_style: CitationStyle,
    llm: LLMClient,
    research: ResearchData | None = None,
) -> AgentResponse[list[Slide]]:
    """
    Generate full slide content for an accepted outline.

    Args:
        outline_slides: Outline slide stubs in order
        citation_style: Where citations should appear
        llm: LLM client
        research: Optional research context for citations

    Returns:
        AgentResponse with the generated slides
    """
    logger.info(f"Generating slide bodies for {len(outline_slides)} slides")

    try:
        result = await llm.generate(
            SYSTEM_PROMPT,
            build_slides_prompt(outline_slides, citation_style, research),
            max_tokens=8000,
            temperature=0.7,
        )
        slides = _parse_slides(extract_json_object(result.content), outline_slides)
    except (LLMError, ValueError, ValidationError) as e:
        logger.error(f"Slide generator error: {e}")
        return AgentResponse(success=False, error=str(e) or "Unknown error in slide generation")

    return AgentResponse(success=True, data=slides, token_usage=result.token_count)
