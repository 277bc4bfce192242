"""Canonical verification document types and status values."""
from __future__ import annotations

import enum
from typing import Dict


class DocType(str, enum.Enum):
    ID = "id"
    PERMIT = "permit"
    OTHER = "other"


class DocumentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Free-form labels seen on upload forms and older rows.
DOC_TYPE_SYNONYMS: Dict[str, str] = {
    "id": DocType.ID.value,
    "government_id": DocType.ID.value,
    "government id": DocType.ID.value,
    "gov_id": DocType.ID.value,
    "valid_id": DocType.ID.value,
    "permit": DocType.PERMIT.value,
    "business_permit": DocType.PERMIT.value,
    "business permit": DocType.PERMIT.value,
    "business-permit": DocType.PERMIT.value,
    "mayor_permit": DocType.PERMIT.value,
    "other": DocType.OTHER.value,
}

# Document classes that prove identity for the EITHER combinator.
IDENTITY_CLASS_DOC_TYPES = frozenset({DocType.ID.value, DocType.PERMIT.value})


def canonicalize_doc_type(raw: str | None) -> str:
    """Map a free-form document label onto ``id``, ``permit`` or ``other``.

    Unknown labels fall into ``other`` so they can never satisfy a requirement.
    """
    if raw is None:
        return DocType.OTHER.value
    key = raw.strip().lower()
    if not key:
        return DocType.OTHER.value
    return DOC_TYPE_SYNONYMS.get(key, DocType.OTHER.value)


def normalize_document_status(raw: str | None) -> str:
    value = (raw or "").strip().lower()
    if value in {s.value for s in DocumentStatus}:
        return value
    return DocumentStatus.PENDING.value
