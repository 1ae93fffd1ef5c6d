"""Outline generation: research-grounded slide stubs validated to a bounded deck."""

import json
from typing import Any

from dossier.core.llm import LLMClient, LLMError, parse_llm_json
from dossier.core.logging import get_logger
from dossier.core.schemas import (
    MAX_OUTLINE_SLIDES,
    MIN_OUTLINE_SLIDES,
    AgentResponse,
    Outline,
    OutlineSlide,
    ResearchData,
    coerce_slide_type,
)

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are a presentation outline architect for Dossier AI.

Your role is to create compelling, well-structured slide outlines from research data.

Guidelines:
- Create 8-12 slides (flexible 5-20 range based on topic complexity)
- Each slide must have a STRONG, SPECIFIC title (never generic like "Introduction" or "Overview")
- Each slide should answer "why this matters" in its bullets
- Assign appropriate slide types: intro, content, data, quote, conclusion
- Structure should be flexible based on the topic (not rigid template)
- 2-4 bullet points per slide

Slide Type Definitions:
- intro: Hook, context, "why now" statements
- content: Frameworks, strategies, explanations
- data: Stats-heavy, chart/graph worthy content
- quote: Key insight, expert opinion (use sparingly)
- conclusion: Next steps, call-to-action, summary

Output format (JSON only, no markdown):
{
  "title": "Compelling presentation title",
  "slides": [
    {
      "index": 0,
      "title": "Specific, action-oriented slide title",
      "bullets": [
        "Specific bullet point with data or insight",
        "Another concrete point"
      ],
      "type": "intro|content|data|quote|conclusion"
    }
  ]
}

Important:
- Return ONLY valid JSON, no markdown code blocks
- NEVER use generic titles like "Introduction", "Overview", "Conclusion"
- Make every title specific and compelling
- Ensure logical flow from slide to slide"""

STRICT_JSON_SUFFIX = "\n\nCRITICAL: Return ONLY valid JSON. No markdown, no explanations, ONLY JSON."

FEW_SHOT_EXAMPLES = """Example 1:
Topic: "B2B SaaS Sales Strategies"
Research: [Data about conversion rates, sales cycles, frameworks]

Good Output:
{
  "title": "Proven Strategies to 2x Your B2B SaaS Conversion Rate",
  "slides": [
    {
      "index": 0,
      "title": "Why 40% of B2B Sales Reps Miss Quota (And How to Fix It)",
      "bullets": [
        "Feature-focused selling sees 60% lower win rates than value-based approaches",
        "Average enterprise deal takes 84 days, requiring sustained multi-stakeholder engagement",
        "Top performers spend 65% of time on discovery vs 35% on pitching"
      ],
      "type": "intro"
    },
    {
      "index": 1,
      "title": "The MEDDIC Framework: How to Qualify Deals That Close",
      "bullets": [
        "Metrics: Quantify the economic impact for your buyer",
        "Economic Buyer: Identify who controls the budget",
        "Decision Criteria: Understand how they'll evaluate options"
      ],
      "type": "content"
    }
  ]
}

Bad Output (Generic Titles):
{
  "title": "B2B SaaS Sales",
  "slides": [
    {"title": "Introduction", ...},  // Too generic!
    {"title": "Overview of Strategies", ...},  // Vague!
    {"title": "Conclusion", ...}  // Boring!
  ]
}"""


class OutlineValidationError(ValueError):
    """Raised when parsed model output is not a usable outline."""


def build_outline_prompt(enhanced_prompt: str, research: ResearchData) -> str:
    findings_text = "\n\n".join(
        f"• {f.stat}\n  Context: {f.context}\n  Source: {f.source.title}" for f in research.findings
    )
    frameworks_text = "\n".join(f"• {fw.name}: {fw.description}" for fw in research.frameworks)
    frameworks_block = f"Frameworks:\n{frameworks_text}\n" if frameworks_text else ""

    return f"""{FEW_SHOT_EXAMPLES}

Now create a compelling presentation outline:

Topic: "{enhanced_prompt}"

Research Findings:
{findings_text}

{frameworks_block}
Create 8-12 slides with STRONG, SPECIFIC titles (never generic!). Return ONLY valid JSON (no markdown):"""


def validate_outline(raw: Any) -> Outline:
    """
    Validate and normalize parsed model output.

    Order: structure check, minimum count, truncation to the maximum,
    index re-derivation from position, type coercion.

    Raises:
        OutlineValidationError: If the structure is missing or has too few slides
    """
    if (
        not isinstance(raw, dict)
        or not raw.get("title")
        or "slides" not in raw
        or not isinstance(raw["slides"], list)
    ):
        raise OutlineValidationError("Invalid outline structure")

    raw_slides = raw["slides"]
    if len(raw_slides) < MIN_OUTLINE_SLIDES:
        raise OutlineValidationError(f"Outline must have at least {MIN_OUTLINE_SLIDES} slides")

    if len(raw_slides) > MAX_OUTLINE_SLIDES:
        logger.info(f"Trimming outline from {len(raw_slides)} to {MAX_OUTLINE_SLIDES} slides")
        raw_slides = raw_slides[:MAX_OUTLINE_SLIDES]

    slides = []
    for idx, item in enumerate(raw_slides):
        if not isinstance(item, dict):
            raise OutlineValidationError(f"Invalid slide structure at index {idx}")
        bullets = item.get("bullets")
        slides.append(
            OutlineSlide(
                index=idx,
                title=str(item.get("title", "")),
                bullets=[str(b) for b in bullets] if isinstance(bullets, list) else [],
                type=coerce_slide_type(item.get("type")),
            )
        )

    return Outline(title=str(raw["title"]), slides=slides)


async def _retry_with_strict_prompt(
    enhanced_prompt: str,
    research: ResearchData,
    llm: LLMClient,
    prior_tokens: int,
) -> AgentResponse[Outline]:
    """Second and final attempt after the model returned unparseable output."""
    logger.info("Retrying outline generation with strict JSON prompt")
    user_prompt = (
        f'Create outline for: "{enhanced_prompt}"\n\n'
        f"Research: {research.model_dump_json(indent=2)}\n\n"
        "Return ONLY JSON:"
    )

    try:
        result = await llm.generate(
            SYSTEM_PROMPT + STRICT_JSON_SUFFIX,
            user_prompt,
            max_tokens=3000,
            temperature=0.5,
        )
        outline = validate_outline(parse_llm_json(result.content))
    except (LLMError, ValueError) as e:
        logger.error(f"Outline retry failed: {e}")
        return AgentResponse(success=False, error="Failed to generate valid outline after retry")

    return AgentResponse(success=True, data=outline, token_usage=prior_tokens + result.token_count)


async def generate_outline(
    enhanced_prompt: str,
    research: ResearchData,
    llm: LLMClient,
) -> AgentResponse[Outline]:
    """
    Generate a slide outline from research data.

    Unparseable JSON is retried exactly once with a stricter system prompt and
    lower temperature; structural problems are not retried.

    Args:
        enhanced_prompt: Prompt produced by the preprocessor
        research: Research findings and frameworks
        llm: LLM client

    Returns:
        AgentResponse with an Outline of 5-20 indexed, typed slides
    """
    try:
        result = await llm.generate(
            SYSTEM_PROMPT,
            build_outline_prompt(enhanced_prompt, research),
            max_tokens=3000,
            temperature=0.7,
            retries=1,
        )
    except LLMError as e:
        logger.error(f"Outline generation error: {e}")
        return AgentResponse(success=False, error=f"Outline generation failed: {e}")

    try:
        raw = parse_llm_json(result.content)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse outline JSON: {result.content[:200]}")
        return await _retry_with_strict_prompt(enhanced_prompt, research, llm, result.token_count)

    try:
        outline = validate_outline(raw)
    except OutlineValidationError as e:
        logger.error(f"Outline validation failed: {e}")
        return AgentResponse(success=False, error=f"Outline generation failed: {e}")

    logger.info(f"Outline generated: {len(outline.slides)} slides")
    return AgentResponse(success=True, data=outline, token_usage=result.token_count)
