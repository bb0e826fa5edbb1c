"""Status calculator: derive a document's status from its form data."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Conventional status field names, highest priority first
STATUS_FIELDS: tuple[str, ...] = (
    "status",
    "documentStatus",
    "requestStatus",
    "applicationStatus",
    "documentRequestStatus",
    "permitStatus",
    "approvalStatus",
    "submissionStatus",
    "reviewStatus",
    "processingStatus",
)

DEFAULT_STATUS = "queued"


def calculate_status(form_data: dict[str, Any] | None) -> str:
    """Return the initial status for a document.

    An explicit status field wins; otherwise boolean ``confirmed`` /
    ``notrequired`` flags, then uploaded ``files``, decide. Anything else
    falls back to ``"queued"``.
    """
    form_data = form_data or {}

    for name in STATUS_FIELDS:
        value = form_data.get(name)
        if value:
            return value if isinstance(value, str) else str(value)

    if form_data.get("confirmed") is True:
        return "confirmed"
    if form_data.get("notrequired") is True:
        return "notrequired"

    if form_data:
        if form_data.get("files"):
            return "completed"
        logger.debug("Form data without explicit status, using %r", DEFAULT_STATUS)
        return DEFAULT_STATUS

    return DEFAULT_STATUS
