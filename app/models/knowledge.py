"""
Knowledge Base Models

This module defines the cumulative knowledge base of business recommendations
and the per-batch extraction document, which share one shape:

    category -> business name -> BusinessRecord

BusinessRecord serializes with the wire names the dashboard reads
(BusinessInfo, Recommendations.Positive/Negative, Suggestions).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    field_validator,
    model_validator,
)


def normalize_key(name: str) -> str:
    """Case-insensitive identity of a category or business name."""
    return name.lower()


# BusinessInfo boundary normalization


class BusinessInfoShape(str, Enum):
    """Shapes the extraction service has been seen to return for BusinessInfo."""

    STRUCTURED = "structured"  # {"phone": "...", "email": "..."}
    LEGACY_LINES = "legacy_lines"  # ["Phone: ...", "Email: ..."]


# Known line prefixes of the legacy shape and the field each maps to
LEGACY_INFO_PREFIXES: Tuple[Tuple[str, str], ...] = (
    ("Phone:", "phone"),
    ("Insta:", "Insta"),
    ("Site:", "Site"),
    ("Email:", "email"),
    ("FB:", "Facebook"),
)


def classify_business_info(value: Any) -> Optional[BusinessInfoShape]:
    """Tell which BusinessInfo shape a raw value has (None if it is neither)."""
    if isinstance(value, dict):
        return BusinessInfoShape.STRUCTURED
    if isinstance(value, (list, tuple, str)):
        return BusinessInfoShape.LEGACY_LINES
    return None


def _stringify(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value if item is not None)
    return str(value)


def _parse_legacy_lines(lines: List[Any]) -> Dict[str, str]:
    info: Dict[str, str] = {}
    for line in lines:
        if not isinstance(line, str):
            continue

        for prefix, field in LEGACY_INFO_PREFIXES:
            if line.startswith(prefix):
                value = line[len(prefix):].strip()
                if value:
                    info[field] = value
                break
        else:
            key, _, value = line.partition(":")
            key, value = key.strip(), value.strip()
            if key and value:
                info[key] = value
    return info


def normalize_business_info(value: Any) -> Dict[str, str]:
    """
    Normalize a raw BusinessInfo value into the canonical field -> text mapping.

    Raises:
        ValueError: If the value has none of the known shapes
    """
    if value is None:
        return {}

    shape = classify_business_info(value)
    if shape == BusinessInfoShape.STRUCTURED:
        return {
            str(key): _stringify(item)
            for key, item in value.items()
            if item is not None
        }
    if shape == BusinessInfoShape.LEGACY_LINES:
        lines = [value] if isinstance(value, str) else list(value)
        return _parse_legacy_lines(lines)

    raise ValueError(f"Unsupported BusinessInfo shape: {type(value).__name__}")


def _normalize_entries(value: Any) -> Dict[str, str]:
    """Entry key -> message text; None means no entries."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Expected a mapping of entries, got {type(value).__name__}")
    return {
        str(key): "" if text is None else _stringify(text)
        for key, text in value.items()
    }


# Business records


class Recommendations(BaseModel):
    """Experience-based recommendations, split by sentiment."""

    model_config = ConfigDict(populate_by_name=True)

    positive: Dict[str, str] = Field(default_factory=dict, alias="Positive")
    negative: Dict[str, str] = Field(default_factory=dict, alias="Negative")

    @field_validator("positive", "negative", mode="before")
    @classmethod
    def _validate_entries(cls, value: Any) -> Dict[str, str]:
        return _normalize_entries(value)


class BusinessRecord(BaseModel):
    """Everything known about one business within a category."""

    model_config = ConfigDict(populate_by_name=True)

    business_info: Dict[str, str] = Field(default_factory=dict, alias="BusinessInfo")
    recommendations: Recommendations = Field(
        default_factory=Recommendations, alias="Recommendations"
    )
    suggestions: Dict[str, str] = Field(default_factory=dict, alias="Suggestions")

    @model_validator(mode="before")
    @classmethod
    def _lift_nested_suggestions(cls, data: Any) -> Any:
        """Move Suggestions the service nested under Recommendations to the top level."""
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data

        recommendations = data.get("Recommendations")
        if recommendations is None:
            data = {**data, "Recommendations": {}}
        elif isinstance(recommendations, dict) and "Suggestions" in recommendations:
            recommendations = dict(recommendations)
            nested = recommendations.pop("Suggestions") or {}
            suggestions = data.get("Suggestions") or {}
            if isinstance(nested, dict) and isinstance(suggestions, dict):
                suggestions = {**nested, **suggestions}
            data = {**data, "Recommendations": recommendations, "Suggestions": suggestions}
        return data

    @field_validator("business_info", mode="before")
    @classmethod
    def _validate_business_info(cls, value: Any) -> Dict[str, str]:
        return normalize_business_info(value)

    @field_validator("suggestions", mode="before")
    @classmethod
    def _validate_suggestions(cls, value: Any) -> Dict[str, str]:
        return _normalize_entries(value)

    def entry_sections(self) -> Dict[str, Dict[str, str]]:
        """The keyed entry mappings of this record, by section name."""
        return {
            "Positive": self.recommendations.positive,
            "Negative": self.recommendations.negative,
            "Suggestions": self.suggestions,
        }

    def entry_count(self) -> int:
        return sum(len(entries) for entries in self.entry_sections().values())


# Knowledge base


class KnowledgeBase(RootModel[Dict[str, Dict[str, BusinessRecord]]]):
    """
    Two-level ordered mapping: category -> business name -> BusinessRecord.

    Used both for the cumulative knowledge base persisted in snapshots and
    for the transient document extracted from one batch of messages.
    Name lookups through find_category/find_business are case-insensitive.
    """

    root: Dict[str, Dict[str, BusinessRecord]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _empty_categories(cls, data: Any) -> Any:
        if data is None:
            return {}
        if isinstance(data, dict):
            return {
                category: {} if businesses is None else businesses
                for category, businesses in data.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "KnowledgeBase":
        return cls.model_validate(data or {})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def categories(self) -> List[str]:
        return list(self.root)

    def businesses(self, category: str) -> Dict[str, BusinessRecord]:
        return self.root.get(category, {})

    def get_record(self, category: str, business: str) -> Optional[BusinessRecord]:
        return self.root.get(category, {}).get(business)

    def find_category(self, name: str) -> Optional[str]:
        """Canonical spelling of a category matching name case-insensitively."""
        wanted = normalize_key(name)
        for category in self.root:
            if normalize_key(category) == wanted:
                return category
        return None

    def find_business(self, category: str, name: str) -> Optional[str]:
        """Canonical spelling of a business within category, case-insensitively."""
        wanted = normalize_key(name)
        for business in self.root.get(category, {}):
            if normalize_key(business) == wanted:
                return business
        return None

    def set_record(self, category: str, business: str, record: BusinessRecord) -> None:
        self.root.setdefault(category, {})[business] = record

    def records(self) -> Iterator[Tuple[str, str, BusinessRecord]]:
        for category, businesses in self.root.items():
            for business, record in businesses.items():
                yield category, business, record

    def business_count(self) -> int:
        return sum(len(businesses) for businesses in self.root.values())

    def entry_count(self) -> int:
        return sum(record.entry_count() for _, _, record in self.records())

    def is_empty(self) -> bool:
        return not self.root


# The document extracted from one batch has the knowledge base shape
ExtractionDocument = KnowledgeBase


class Snapshot(BaseModel):
    """One immutable, persisted version of the cumulative knowledge base."""

    id: int
    analysis_data: KnowledgeBase = Field(default_factory=KnowledgeBase)
    analysis_period_start: Optional[datetime] = None
    analysis_period_end: Optional[datetime] = None
    created_at: datetime
