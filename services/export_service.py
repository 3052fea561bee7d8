"""
Export Service - in-memory file construction for download actions
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from utils.exception_handler import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportFile:
    filename: str
    content_type: str
    payload: bytes

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_download(data: Any, filename: str, content_type: str = "application/json") -> ExportFile:
    """
    Strings are exported as-is; anything else is serialized as JSON
    indented by two spaces.
    """
    if not filename or "/" in filename or "\\" in filename:
        raise ValidationError(f"Invalid export filename: {filename!r}")

    if isinstance(data, str):
        text = data
    else:
        text = json.dumps(data, indent=2, default=_json_default)

    payload = text.encode("utf-8")
    logger.info(f"📁 EXPORT_BUILT: {filename} ({len(payload)} bytes)")
    return ExportFile(filename=filename, content_type=content_type, payload=payload)
