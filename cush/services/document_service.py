"""
cush/services/document_service.py

Purpose: Document uploads and review

- Stores uploaded files under UPLOAD_DIR/<userId>/<uuid>-<filename>
- Document records with per-user and per-application index lists
- Owner (or privileged role) access checks
- Review status changes (pending → approved / rejected) with reviewer stamp
"""

import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from cush.core.config import settings
from cush.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from cush.core.logging import get_logger
from cush.core.security import Capability, SessionClaims
from cush.db import keys
from cush.db.redis_client import get_store
from cush.services import application_service, notification_service
from utils.constants import (
    ALLOWED_UPLOAD_CONTENT_TYPES,
    DOCUMENT_PENDING,
    DOCUMENT_STATUSES,
    DOCUMENT_UPLOADED_MESSAGE,
    DOCUMENT_UPLOADED_TITLE,
    DOCUMENT_REVIEWED_MESSAGE,
    DOCUMENT_REVIEWED_TITLE,
    NOTIFICATION_ERROR,
    NOTIFICATION_INFO,
    NOTIFICATION_SUCCESS,
)
from utils.time_utils import utc_now_iso
from utils.validation_utils import sanitize_filename

logger = get_logger(__name__)


def _upload_root() -> Path:
    return Path(settings.UPLOAD_DIR)


def _write_file(path: Path, data: bytes):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _remove_file(path: Path):
    if path.exists():
        path.unlink()


def resolve_file_path(document: Dict[str, Any]) -> Path:
    """Absolute location of a document's stored file."""
    return _upload_root() / document["storagePath"]


def can_read(claims: SessionClaims, document: Dict[str, Any]) -> bool:
    return (
        document["userId"] == claims.id
        or claims.can(Capability.ACCESS_ANY_RECORD)
        or claims.can(Capability.REVIEW_DOCUMENTS)
    )


async def upload_document(
    claims: SessionClaims,
    filename: str,
    content_type: Optional[str],
    data: bytes,
    name: Optional[str] = None,
    application_id: Optional[str] = None,
    application_type: Optional[str] = None
) -> Dict[str, Any]:
    """
    Stores an uploaded file and records it as a pending document.

    Args:
        claims: Uploading session; the caller becomes the owner
        filename: Client filename (sanitized before use)
        content_type: MIME type reported by the client
        data: File content
        name: Display name (defaults to the filename)
        application_id / application_type: Optional link to an application
            the caller may access

    Returns:
        The document record

    Raises:
        ValidationError: Empty, oversized or unsupported file, or a bad
            application link
        ResourceNotFoundError / AuthorizationError: The linked application
            is missing or belongs to someone else
    """
    user_id = claims.id

    if not data:
        raise ValidationError("No file provided")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            "File too large",
            details={"maxBytes": settings.MAX_UPLOAD_BYTES},
        )
    if content_type not in ALLOWED_UPLOAD_CONTENT_TYPES:
        raise ValidationError(
            f"Unsupported file type: {content_type}",
            details={"allowed": list(ALLOWED_UPLOAD_CONTENT_TYPES)},
        )
    if application_id:
        if application_type not in keys.APPLICATION_TYPES:
            raise ValidationError(
                f"Unknown application type: {application_type}",
                details={"allowed": list(keys.APPLICATION_TYPES)},
            )
        await application_service.get_application(claims, application_type, application_id)
    elif application_type:
        raise ValidationError("applicationId is required when applicationType is given")

    safe_name = sanitize_filename(filename)
    storage_path = f"{user_id}/{uuid.uuid4()}-{safe_name}"
    await run_in_threadpool(_write_file, _upload_root() / storage_path, data)

    document_id = str(uuid.uuid4())
    document = {
        "id": document_id,
        "userId": user_id,
        "applicationId": application_id,
        "applicationType": application_type,
        "name": name or filename or safe_name,
        "type": content_type,
        "size": len(data),
        "url": f"/api/documents/{document_id}/download",
        "storagePath": storage_path,
        "status": DOCUMENT_PENDING,
        "uploadedAt": utc_now_iso(),
    }

    store = get_store()
    await store.set_json(keys.document_key(document_id), document)
    await store.lpush(keys.user_documents_key(user_id), document_id)
    if application_id:
        await store.lpush(keys.application_documents_key(application_type, application_id), document_id)

    logger.info(f"Document uploaded ({document['size']} bytes)", extra={"user_id": user_id})

    await notification_service.create_notification(
        user_id=user_id,
        title=DOCUMENT_UPLOADED_TITLE,
        message=DOCUMENT_UPLOADED_MESSAGE.format(name=document["name"]),
        notification_type=NOTIFICATION_INFO,
        link="/dashboard/documents",
    )
    return document


async def get_document(document_id: str) -> Optional[Dict[str, Any]]:
    return await get_store().get_json(keys.document_key(document_id))


async def get_document_for(claims: SessionClaims, document_id: str) -> Dict[str, Any]:
    """
    Fetches a document the caller may read.

    Raises:
        ResourceNotFoundError: If missing
        AuthorizationError: If the caller is neither owner nor privileged
    """
    document = await get_document(document_id)
    if not document:
        raise ResourceNotFoundError("Document not found")
    if not can_read(claims, document):
        raise AuthorizationError("Not allowed to access this document")
    return document


async def _load_many(document_ids: List[str]) -> List[Dict[str, Any]]:
    store = get_store()
    documents = []
    for document_id in document_ids:
        document = await store.get_json(keys.document_key(document_id))
        if document:
            documents.append(document)
    documents.sort(key=lambda d: d.get("uploadedAt") or "", reverse=True)
    return documents


async def get_user_documents(user_id: str) -> List[Dict[str, Any]]:
    """
    A user's documents, newest first.
    """
    return await _load_many(await get_store().lrange(keys.user_documents_key(user_id), 0, -1))


async def get_application_documents(application_type: str, application_id: str) -> List[Dict[str, Any]]:
    key = keys.application_documents_key(application_type, application_id)
    return await _load_many(await get_store().lrange(key, 0, -1))


async def update_document_status(
    document_id: str,
    status: str,
    reviewed_by: str,
    notes: Optional[str] = None
) -> Dict[str, Any]:
    """
    Records a review decision and notifies the owner.

    Raises:
        ValidationError: Unknown status
        ResourceNotFoundError: If the document does not exist
    """
    if status not in DOCUMENT_STATUSES:
        raise ValidationError(f"Invalid document status: {status}")

    document = await get_document(document_id)
    if not document:
        raise ResourceNotFoundError("Document not found")

    document["status"] = status
    document["notes"] = notes or document.get("notes")
    document["reviewedAt"] = utc_now_iso()
    document["reviewedBy"] = reviewed_by
    await get_store().set_json(keys.document_key(document_id), document)

    logger.info(f"Document reviewed: {status}", extra={"user_id": document["userId"]})

    if status != DOCUMENT_PENDING:
        await notification_service.create_notification(
            user_id=document["userId"],
            title=DOCUMENT_REVIEWED_TITLE.format(status=status.capitalize()),
            message=DOCUMENT_REVIEWED_MESSAGE.format(name=document["name"], status=status),
            notification_type=NOTIFICATION_SUCCESS if status == "approved" else NOTIFICATION_ERROR,
            link="/dashboard/documents",
        )
    return document


async def delete_document(claims: SessionClaims, document_id: str) -> None:
    """
    Deletes a document, its file and its index entries.

    Raises:
        ResourceNotFoundError: If missing
        AuthorizationError: If the caller is not the owner (or an admin)
    """
    document = await get_document(document_id)
    if not document:
        raise ResourceNotFoundError("Document not found")
    if document["userId"] != claims.id and not claims.can(Capability.ACCESS_ANY_RECORD):
        raise AuthorizationError("Not allowed to delete this document")

    await run_in_threadpool(_remove_file, resolve_file_path(document))

    store = get_store()
    await store.delete(keys.document_key(document_id))
    await store.lrem(keys.user_documents_key(document["userId"]), 0, document_id)
    if document.get("applicationId") and document.get("applicationType"):
        await store.lrem(
            keys.application_documents_key(document["applicationType"], document["applicationId"]),
            0,
            document_id,
        )

    logger.info("Document deleted", extra={"user_id": document["userId"]})
