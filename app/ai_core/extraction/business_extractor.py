"""
Business Recommendation Extraction Module

This module turns one batch of group chat messages into an extraction
document (category -> business -> record). It uses a 3-step process:
1. Drop invalid messages and format the rest as a transcript
2. Call the extraction service with the fixed instruction, forcing JSON output
3. Parse and structurally validate the returned document
"""

import logging
from typing import Any, List, Optional, Sequence

from langchain_core.exceptions import OutputParserException
from langchain_core.messages import SystemMessage, HumanMessage
from langchain_core.output_parsers import JsonOutputParser
from pydantic import ValidationError

from app.models.messages import ChatMessage, as_utc
from app.models.knowledge import KnowledgeBase
from app.ai_core.prompts.extraction import (
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_USER_PROMPT_TEMPLATE,
)
from app.config import Settings, get_settings
from app.services.errors import PipelineError

logger = logging.getLogger(__name__)

# Tolerates markdown fences and prose around the JSON object
output_parser = JsonOutputParser()


# Custom Exceptions


class EmptyBatch(PipelineError):
    """
    Raised when no message of a batch survives validation.
    The batch is skipped and nothing is persisted for it.
    """

    pass


class MalformedExtraction(PipelineError):
    """
    Raised when the extraction service fails or returns output that is not
    a valid extraction document. The batch is not merged and the cursor is
    not advanced, so it is retried on the next run.
    """

    pass


def create_extraction_llm(settings: Settings):
    """Build the gen_ai_hub chat model used as the extraction service."""
    from gen_ai_hub.proxy.langchain.openai import ChatOpenAI
    from gen_ai_hub.proxy.core.proxy_clients import get_proxy_client

    proxy_client = get_proxy_client("gen-ai-hub")
    return ChatOpenAI(
        proxy_model_name=settings.openai_model,
        proxy_client=proxy_client,
        temperature=settings.temperature,
    )


def format_timestamp(value) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2024-01-01T00:00:00.000Z"""
    return as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_transcript(messages: Sequence[ChatMessage]) -> str:
    """One "<timestamp>, <user_id>: <content>" line per message, order preserved."""
    return "\n".join(
        f"{format_timestamp(msg.timestamp)}, {msg.user_id}: {msg.content.strip()}"
        for msg in messages
    )


def parse_extraction(response: Any) -> KnowledgeBase:
    """
    Parse the service response into an extraction document.

    Args:
        response: Chat model message or raw response text

    Raises:
        MalformedExtraction: If the output is not JSON, the top level is not a
            mapping, or the mapping does not have the document shape
    """
    try:
        data = output_parser.invoke(response)
    except OutputParserException as e:
        raise MalformedExtraction(f"Extraction response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedExtraction(
            f"Extraction response must be a JSON object, got {type(data).__name__}"
        )

    try:
        return KnowledgeBase.model_validate(data)
    except ValidationError as e:
        raise MalformedExtraction(
            f"Extraction response does not match the document shape: {e}"
        ) from e


class BusinessExtractor:
    """
    Extracts business recommendations from a batch of chat messages.
    """

    def __init__(self, llm=None, settings: Optional[Settings] = None):
        """
        Args:
            llm: LangChain chat model to call; defaults to the gen_ai_hub model
            settings: Application settings; defaults to get_settings()
        """
        self.settings = settings or get_settings()
        self.llm = llm if llm is not None else create_extraction_llm(self.settings)

        # Force a JSON object response
        self.json_llm = self.llm.bind(response_format={"type": "json_object"})

    async def extract(
        self,
        messages: Sequence[ChatMessage],
        group_id: Optional[str] = None,
    ) -> KnowledgeBase:
        """
        Extract an extraction document from one ordered batch of messages.

        Args:
            messages: Batch in ascending timestamp order
            group_id: Group the batch belongs to (for error context)

        Returns:
            KnowledgeBase holding only what this batch mentions

        Raises:
            EmptyBatch: If no message survives validation
            MalformedExtraction: If the service call fails or returns an invalid document
        """
        period_start = messages[0].timestamp if messages else None
        period_end = messages[-1].timestamp if messages else None

        valid = self.filter_valid(messages)
        if not valid:
            raise EmptyBatch(
                f"No valid messages in batch of {len(messages)}",
                group_id=group_id,
                period_start=period_start,
                period_end=period_end,
            )

        transcript = format_transcript(valid)
        logger.info(
            f"Extracting from {len(valid)}/{len(messages)} messages "
            f"({format_timestamp(valid[0].timestamp)} .. {format_timestamp(valid[-1].timestamp)})"
        )

        prompt = [
            SystemMessage(content=EXTRACTION_SYSTEM_PROMPT),
            HumanMessage(content=EXTRACTION_USER_PROMPT_TEMPLATE.format(transcript=transcript)),
        ]

        try:
            response = await self.json_llm.ainvoke(prompt)
        except Exception as e:
            logger.error(f"Extraction service call failed: {str(e)}", exc_info=True)
            raise MalformedExtraction(
                f"Extraction service call failed: {str(e)}",
                group_id=group_id,
                period_start=period_start,
                period_end=period_end,
            ) from e

        try:
            document = parse_extraction(response)
        except MalformedExtraction as e:
            e.group_id = group_id
            e.period_start = period_start
            e.period_end = period_end
            raise

        logger.info(
            f"Extracted {len(document.categories())} categories, "
            f"{document.business_count()} businesses, {document.entry_count()} entries"
        )
        return document

    @staticmethod
    def filter_valid(messages: Sequence[ChatMessage]) -> List[ChatMessage]:
        """Keep the messages that satisfy the message invariants, in order."""
        valid = [msg for msg in messages if msg.is_valid()]
        dropped = len(messages) - len(valid)
        if dropped:
            logger.debug(f"Dropped {dropped} invalid messages")
        return valid
