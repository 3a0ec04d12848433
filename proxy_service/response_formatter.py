"""
Response formatter: turns driver results into JSON-safe bodies.

BSON values that JSON has no type for (ObjectId, datetime, Decimal128,
binary ...) are converted to strings the way the driver prints them.
"""

import base64
import datetime as _dt
from typing import Any, Dict, List, Optional


def sanitise_value(obj: Any) -> Any:
    """Recursively convert non-JSON-safe types to safe representations."""
    if isinstance(obj, dict):
        return {str(k): sanitise_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitise_value(item) for item in obj]
    if isinstance(obj, bytes):
        # Binary fields (e.g. vector embeddings): UTF-8 when possible, else base64
        try:
            return obj.decode("utf-8")
        except (UnicodeDecodeError, ValueError):
            return base64.b64encode(obj).decode("ascii")
    if isinstance(obj, (_dt.datetime, _dt.date)):
        return obj.isoformat()
    if isinstance(obj, (int, float, str, bool, type(None))):
        return obj
    # ObjectId, Decimal128, Timestamp, etc.
    return str(obj)


def clean_documents(docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [sanitise_value(doc) for doc in docs]


def clean_document(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return None if doc is None else sanitise_value(doc)


def missing_fields_error(fields: List[str]) -> str:
    """Human-readable 400 message, e.g. ``Missing db, collection``."""
    if not fields:
        return "Invalid request body"
    return "Missing " + ", ".join(fields)
