"""Prompt validation and enhancement ahead of research and outlining."""

import re

from dossier.core.llm import LLMClient, LLMError
from dossier.core.logging import get_logger
from dossier.core.schemas import AgentResponse, PreprocessResult, PromptValidation

logger = get_logger(__name__)

MIN_RAW_PROMPT_CHARS = 3
MAX_RAW_PROMPT_CHARS = 1000

SYSTEM_PROMPT = """You are a prompt enhancement specialist for an AI presentation generator called Dossier AI.

Your role is to:
1. Validate user prompts for appropriateness and clarity
2. Enhance vague or short prompts with research-friendly detail
3. Reject harmful, off-topic, or inappropriate prompts
4. Add structure cues that help downstream research and outline agents

Guidelines:
- Reject prompts about: illegal activities, harmful content, personal attacks, spam
- Reject prompts that are completely off-topic for presentations
- Enhance vague prompts by adding: target audience, key objectives, context, actionable frameworks
- Keep the core intent of the user's prompt intact
- Output should be a clear, research-friendly prompt (2-4 sentences max)

Output format:
- If valid: Return ONLY the enhanced prompt as plain text
- If invalid: Return "INVALID:" followed by a brief reason and 1-2 suggestions

Examples:

Input: "sales tips"
Output: "10 data-driven sales strategies for B2B SaaS companies in 2025, including case studies, proven frameworks, and actionable tactics for improving conversion rates"

Input: "how to hack passwords"
Output: "INVALID: This topic involves illegal activities. Suggestions: (1) 'Best practices for password security in organizations' (2) 'How to implement secure authentication systems'\""""

FEW_SHOT_EXAMPLES = """Here are some examples:

User: "climate change"
Assistant: "The impact of climate change on global business strategy: data-driven insights, sustainable practices from leading companies, and actionable steps for reducing corporate carbon footprint in 2025"

User: "make a presentation about dogs"
Assistant: "The evolution of dog breeds: historical context, genetic science behind breed development, popular breeds and their characteristics, and responsible pet ownership guidelines"

User: "teach me to phish people"
Assistant: "INVALID: This involves illegal activities and social engineering attacks. Suggestions: (1) 'How to protect your organization from phishing attacks' (2) 'Cybersecurity awareness training for employees'\""""


def parse_rejection(content: str) -> tuple[str, list[str]]:
    """Split an ``INVALID:`` reply into its reason and numbered suggestions."""
    reason_part, _, suggestions_part = content.partition("Suggestions:")
    reason = reason_part.replace("INVALID:", "", 1).strip()

    suggestions = []
    for item in re.split(r"\(\d+\)", suggestions_part)[1:]:
        cleaned = re.sub(r"^['\"]|['\"]$", "", item.strip())
        if cleaned:
            suggestions.append(cleaned)
    return reason, suggestions


async def preprocess_prompt(raw_prompt: str, llm: LLMClient) -> AgentResponse[PreprocessResult]:
    """
    Validate and enhance a raw user prompt.

    Args:
        raw_prompt: Prompt as typed by the user
        llm: LLM client

    Returns:
        AgentResponse with the enhanced prompt, or a rejection with suggestions
    """
    if not raw_prompt or len(raw_prompt.strip()) < MIN_RAW_PROMPT_CHARS:
        return AgentResponse(
            success=False,
            error="Prompt too short. Please provide more detail (at least 3 characters).",
        )

    if len(raw_prompt) > MAX_RAW_PROMPT_CHARS:
        return AgentResponse(
            success=False,
            error="Prompt too long. Please keep it under 1000 characters.",
        )

    user_prompt = f"""{FEW_SHOT_EXAMPLES}

Now process this user prompt:
User: "{raw_prompt}"
Assistant:"""

    try:
        result = await llm.generate(
            SYSTEM_PROMPT, user_prompt, max_tokens=500, temperature=0.7, retries=1
        )
    except LLMError as e:
        logger.error(f"Preprocessor error: {e}")
        return AgentResponse(success=False, error=f"Preprocessing failed: {e}")

    content = result.content.strip()

    if content.startswith("INVALID:"):
        reason, suggestions = parse_rejection(content)
        logger.info(f"Prompt rejected: {reason}")
        return AgentResponse(
            success=False,
            error=f"Invalid prompt: {reason}",
            data=PreprocessResult(
                enhanced_prompt="",
                validation=PromptValidation(is_valid=False, warnings=suggestions),
            ),
            token_usage=result.token_count,
        )

    return AgentResponse(
        success=True,
        data=PreprocessResult(
            enhanced_prompt=content.strip('"'),
            validation=PromptValidation(is_valid=True),
        ),
        token_usage=result.token_count,
    )
