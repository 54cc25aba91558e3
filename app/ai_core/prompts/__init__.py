"""Prompts package."""

from app.ai_core.prompts.extraction import (
    BUSINESS_CATEGORIES,
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_USER_PROMPT_TEMPLATE,
)

__all__ = [
    "BUSINESS_CATEGORIES",
    "EXTRACTION_SYSTEM_PROMPT",
    "EXTRACTION_USER_PROMPT_TEMPLATE",
]
