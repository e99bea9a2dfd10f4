"""Statement ingestion: CSV column sniffing and AI-assisted extraction."""

from __future__ import annotations

from .oracle import (
    ExtractionFailure,
    ExtractionOutcome,
    OpenAIStatementExtractor,
    StatementExtractor,
    parse_extraction_output,
)
from .pipeline import IngestResult, ingest, ingest_files, new_session_id

__all__ = [
    "ExtractionFailure",
    "ExtractionOutcome",
    "OpenAIStatementExtractor",
    "StatementExtractor",
    "parse_extraction_output",
    "IngestResult",
    "ingest",
    "ingest_files",
    "new_session_id",
]
