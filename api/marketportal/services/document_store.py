"""Verification document storage.

``DocumentStore`` owns both the file blobs and the ``user_role_documents``
rows for one session. It never commits; the lifecycle service decides when
the surrounding transaction ends.
"""
from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from marketportal.core.config import settings
from marketportal.core.document_types import (
    DocumentStatus,
    canonicalize_doc_type,
    normalize_document_status,
)
from marketportal.core.errors import ValidationError
from marketportal.core.time import note_stamp, utc_now
from marketportal.models.role_assignment import IdentityDocument, RoleDocument

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
}
PDF_MIME_TYPES = {
    "application/pdf": "pdf",
}

# Leading bytes for each accepted format; the declared MIME type must match.
_MAGIC_PREFIXES = {
    "image/jpeg": (b"\xff\xd8\xff",),
    "image/png": (b"\x89PNG\r\n\x1a\n",),
    "application/pdf": (b"%PDF-",),
}


@dataclass(frozen=True)
class UploadedFile:
    content: bytes
    mime_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class LatestDocument:
    document_id: int
    status: str
    file_reference: str


def validate_upload(
    upload: UploadedFile,
    doc_type: str,
    allow_pdf: bool = False,
    max_bytes: Optional[int] = None,
) -> str:
    """Check size and type of an upload; returns the file extension to use."""
    limit = max_bytes if max_bytes is not None else settings.MAX_DOCUMENT_BYTES
    label = doc_type.capitalize()
    if upload.size == 0:
        raise ValidationError(f"{label} file is empty.")
    if upload.size > limit:
        raise ValidationError(f"{label} exceeds {limit // (1024 * 1024)}MB.")

    allowed = dict(IMAGE_MIME_TYPES)
    if allow_pdf:
        allowed.update(PDF_MIME_TYPES)
    mime_type = (upload.mime_type or "").strip().lower()
    if mime_type not in allowed:
        formats = "JPG, PNG or PDF" if allow_pdf else "JPG or PNG"
        raise ValidationError(f"{label} must be {formats}.")
    if not upload.content.startswith(_MAGIC_PREFIXES[mime_type]):
        raise ValidationError(f"{label} content does not match its declared type {mime_type}.")
    return allowed[mime_type]


class FileBlobStore:
    """Writes document bytes under a base directory and returns relative references."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.DOCUMENT_STORAGE_DIR)

    def save(self, owner_key: str, content: bytes, extension: str) -> str:
        target_dir = self.base_dir / owner_key
        target_dir.mkdir(parents=True, exist_ok=True)
        name = f"{int(utc_now().timestamp())}_{secrets.token_hex(8)}.{extension}"
        (target_dir / name).write_bytes(content)
        return f"{owner_key}/{name}"

    def delete(self, file_reference: str) -> None:
        try:
            os.remove(self.base_dir / file_reference)
        except FileNotFoundError:
            pass


class DocumentStore:
    """Role-scoped document rows plus their blobs."""

    def __init__(self, db: Session, blobs: Optional[FileBlobStore] = None):
        self.db = db
        self.blobs = blobs or FileBlobStore()
        self._written: List[str] = []

    def governing_documents(self, role_assignment_id: int) -> Dict[str, RoleDocument]:
        """Latest document per canonical type; older rows stay for history."""
        rows = self.db.query(RoleDocument).filter(
            RoleDocument.user_role_id == role_assignment_id
        ).order_by(
            RoleDocument.uploaded_at.asc(),
            RoleDocument.document_id.asc()
        ).populate_existing().all()
        latest: Dict[str, RoleDocument] = {}
        for row in rows:
            latest[canonicalize_doc_type(row.doc_type)] = row
        return latest

    def latest_by_type(self, role_assignment_id: int) -> Dict[str, LatestDocument]:
        return {
            doc_type: LatestDocument(
                document_id=row.document_id,
                status=normalize_document_status(row.status),
                file_reference=row.file_path,
            )
            for doc_type, row in self.governing_documents(role_assignment_id).items()
        }

    def status_map(self, role_assignment_id: int) -> Dict[str, str]:
        return {
            doc_type: latest.status
            for doc_type, latest in self.latest_by_type(role_assignment_id).items()
        }

    def put(
        self,
        role_assignment_id: int,
        doc_type: str,
        file_bytes: bytes,
        mime_type: str,
        original_filename: Optional[str] = None,
        allow_pdf: bool = False,
        owner_key: Optional[str] = None,
    ) -> str:
        """Store a document and return its file reference.

        A governing document of the same type that was rejected is replaced
        in place (its notes keep the history); anything else gets a new row.
        """
        canonical = canonicalize_doc_type(doc_type)
        upload = UploadedFile(content=file_bytes, mime_type=mime_type, filename=original_filename)
        extension = validate_upload(upload, canonical, allow_pdf=allow_pdf)

        file_reference = self.blobs.save(
            owner_key or f"assignment_{role_assignment_id}", file_bytes, extension
        )
        self._written.append(file_reference)

        existing = self.governing_documents(role_assignment_id).get(canonical)
        if existing is not None and existing.status == DocumentStatus.REJECTED.value:
            existing.append_note(
                f"[Resubmitted {note_stamp()}] replaced {existing.original_filename or existing.file_path}"
            )
            existing.file_path = file_reference
            existing.original_filename = original_filename
            existing.mime_type = mime_type
            existing.file_size = upload.size
            existing.status = DocumentStatus.PENDING.value
            existing.uploaded_at = utc_now()
            existing.reviewed_at = None
            existing.reviewed_by = None
        else:
            self.db.add(RoleDocument(
                user_role_id=role_assignment_id,
                doc_type=canonical,
                status=DocumentStatus.PENDING.value,
                file_path=file_reference,
                original_filename=original_filename,
                mime_type=mime_type,
                file_size=upload.size,
                admin_notes=f"[Uploaded {note_stamp()}]",
            ))
        self.db.flush()
        return file_reference

    @property
    def written_count(self) -> int:
        return len(self._written)

    def discard_written_files(self, since: int = 0) -> None:
        """Remove blobs written by a transaction (or savepoint) that was rolled back."""
        for file_reference in self._written[since:]:
            try:
                self.blobs.delete(file_reference)
            except OSError:
                logger.warning("Could not remove orphaned document %s", file_reference, exc_info=True)
        del self._written[since:]

    def forget_written_files(self) -> None:
        self._written.clear()


class IdentityDocumentFallback:
    """User-level identity documents consulted when a role-level type is missing."""

    def __init__(self, db: Session):
        self.db = db

    def latest_by_type(self, user_id: int) -> Dict[str, str]:
        rows = self.db.query(IdentityDocument).filter(
            IdentityDocument.user_id == user_id
        ).order_by(
            IdentityDocument.uploaded_at.asc(),
            IdentityDocument.identity_id.asc()
        ).populate_existing().all()
        latest: Dict[str, str] = {}
        for row in rows:
            latest[canonicalize_doc_type(row.doc_type)] = normalize_document_status(row.status)
        return latest
