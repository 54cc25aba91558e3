from app.ai_core.extraction.business_extractor import (
    BusinessExtractor,
    EmptyBatch,
    MalformedExtraction,
)

__all__ = ["BusinessExtractor", "EmptyBatch", "MalformedExtraction"]
