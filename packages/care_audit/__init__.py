"""care_audit: care-provider statement normalization and overcharge detection.

Public exports
--------------
- ``detect`` / ``DetectOptions``: the overcharge detector
- ``classify`` and ``similarity``: the text heuristics it builds on
- ``ingest`` / ``ingest_files``: turn uploaded statements into transactions
- ``Transaction`` / ``Alert`` records
"""

from __future__ import annotations

from .categories import classify
from .detector import DetectOptions, detect
from .ingest import IngestResult, ingest, ingest_files, new_session_id
from .models import Alert, Transaction
from .similarity import similarity

__all__ = [
    "Alert",
    "DetectOptions",
    "IngestResult",
    "Transaction",
    "classify",
    "detect",
    "ingest",
    "ingest_files",
    "new_session_id",
    "similarity",
]
