"""
Tests for Business Recommendation Extraction

Transcript formatting, the extraction service call and response validation.
The extraction service is replaced by a fake chat model.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import AsyncMock
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from app.ai_core.extraction.business_extractor import (
    BusinessExtractor,
    EmptyBatch,
    MalformedExtraction,
    format_transcript,
    parse_extraction,
)
from app.ai_core.prompts.extraction import EXTRACTION_SYSTEM_PROMPT
from app.config import Settings

from conftest import business_doc, chat, make_llm, utc


@pytest.fixture
def batch():
    return [
        chat(utc(2024, 1, 1, 9, 0, 0), "u1", "  Joe's Bakery has great cakes!  "),
        chat(utc(2024, 1, 1, 9, 5, 30, 250000), "u2", "   "),
        chat(utc(2024, 1, 1, 10, 0, 0), "u3", "Call Sparkle Cleaners at 555-0000"),
    ]


def test_format_transcript_keeps_order_and_trims():
    messages = [
        chat(utc(2024, 1, 1), "u1", "  first  "),
        chat(utc(2024, 1, 2, 3, 4, 5, 678000), "u2", "second"),
    ]
    assert format_transcript(messages) == (
        "2024-01-01T00:00:00.000Z, u1: first\n"
        "2024-01-02T03:04:05.678Z, u2: second"
    )


def test_parse_extraction_accepts_fenced_json():
    document = parse_extraction('```json\n{"Misc": {"Shop": {}}}\n```')
    assert document.categories() == ["Misc"]


def test_parse_extraction_accepts_prose_around_fenced_json():
    reply = AIMessage(content='Here is the JSON:\n```json\n{"Home Services": {"Fix It": {}}}\n```')

    document = parse_extraction(reply)

    assert document.categories() == ["Home Services"]
    assert list(document.businesses("Home Services")) == ["Fix It"]


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2, 3]",
        '"just a string"',
        '{"Misc": "not a mapping"}',
        '{"Misc": {"Shop": ["not", "a", "record"]}}',
    ],
)
def test_parse_extraction_rejects_malformed(raw):
    with pytest.raises(MalformedExtraction):
        parse_extraction(raw)


@pytest.mark.asyncio
async def test_extract_calls_service_with_transcript(batch):
    document = business_doc(
        "Food and Beverage",
        "Joe's Bakery",
        positive={"2024-01-01T09:00:00.000Z: u1": "Joe's Bakery has great cakes!"},
    )
    llm = make_llm(document)
    extractor = BusinessExtractor(llm=llm, settings=Settings())

    result = await extractor.extract(batch, group_id="group-1")

    assert result.to_dict() == document
    llm.bind.assert_called_once_with(response_format={"type": "json_object"})

    prompt = llm.ainvoke.await_args.args[0]
    assert isinstance(prompt[0], SystemMessage)
    assert prompt[0].content == EXTRACTION_SYSTEM_PROMPT
    assert isinstance(prompt[1], HumanMessage)
    assert (
        "2024-01-01T09:00:00.000Z, u1: Joe's Bakery has great cakes!\n"
        "2024-01-01T10:00:00.000Z, u3: Call Sparkle Cleaners at 555-0000"
    ) in prompt[1].content
    # Invalid message dropped
    assert "u2" not in prompt[1].content


@pytest.mark.asyncio
async def test_extract_raises_empty_batch_without_calling_service():
    llm = make_llm()
    extractor = BusinessExtractor(llm=llm, settings=Settings())
    messages = [chat(utc(2024, 1, 1), "u1", " "), chat(utc(2024, 1, 2), "u2", "")]

    with pytest.raises(EmptyBatch) as excinfo:
        await extractor.extract(messages, group_id="group-1")

    assert excinfo.value.group_id == "group-1"
    assert excinfo.value.period_end == utc(2024, 1, 2)
    llm.ainvoke.assert_not_awaited()


@pytest.mark.asyncio
async def test_extract_wraps_malformed_response_with_batch_context(batch):
    extractor = BusinessExtractor(llm=make_llm("[]"), settings=Settings())

    with pytest.raises(MalformedExtraction) as excinfo:
        await extractor.extract(batch, group_id="group-1")

    assert excinfo.value.group_id == "group-1"
    assert excinfo.value.period_start == utc(2024, 1, 1, 9, 0, 0)
    assert excinfo.value.period_end == utc(2024, 1, 1, 10, 0, 0)


@pytest.mark.asyncio
async def test_extract_wraps_service_failure(batch):
    llm = make_llm()
    llm.ainvoke = AsyncMock(side_effect=TimeoutError("service timed out"))
    extractor = BusinessExtractor(llm=llm, settings=Settings())

    with pytest.raises(MalformedExtraction, match="service timed out"):
        await extractor.extract(batch, group_id="group-1")


@pytest.mark.asyncio
async def test_extract_accepts_unknown_categories(batch):
    document = business_doc("Pet Care", "Happy Paws", suggestions={"t: u1": "Nice groomers"})
    extractor = BusinessExtractor(llm=make_llm(document), settings=Settings())

    result = await extractor.extract(batch)

    assert result.categories() == ["Pet Care"]
