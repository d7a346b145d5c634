"""
cush/api/documents.py

Purpose: Document endpoints

- Multipart upload
- Owner listing, detail, download and delete
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from cush.api.deps import current_session
from cush.core.config import settings
from cush.core.exceptions import ResourceNotFoundError
from cush.core.security import SessionClaims
from cush.services import document_service

router = APIRouter()


@router.post("/upload", status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    name: Optional[str] = Form(None),
    application_id: Optional[str] = Form(None, alias="applicationId"),
    application_type: Optional[str] = Form(None, alias="applicationType"),
    session: SessionClaims = Depends(current_session)
):
    # Read at most one byte past the limit
    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    document = await document_service.upload_document(
        session,
        filename=file.filename,
        content_type=file.content_type,
        data=data,
        name=name or None,
        application_id=application_id or None,
        application_type=application_type or None,
    )
    return {"success": True, "document": document}


@router.get("")
async def list_documents(session: SessionClaims = Depends(current_session)):
    return {"documents": await document_service.get_user_documents(session.id)}


@router.get("/{document_id}")
async def get_document(document_id: str, session: SessionClaims = Depends(current_session)):
    return {"document": await document_service.get_document_for(session, document_id)}


@router.get("/{document_id}/download")
async def download_document(document_id: str, session: SessionClaims = Depends(current_session)):
    document = await document_service.get_document_for(session, document_id)
    path = document_service.resolve_file_path(document)
    if not path.exists():
        raise ResourceNotFoundError("Document file not found")
    return FileResponse(path, media_type=document.get("type"), filename=document["name"])


@router.delete("/{document_id}")
async def delete_document(document_id: str, session: SessionClaims = Depends(current_session)):
    await document_service.delete_document(session, document_id)
    return {"success": True}
