"""
cush/api/email_templates.py

Purpose: Email template management (admin only)

- List, fetch, create/update and delete templates
- Preview rendering and test sends
"""

from fastapi import APIRouter, Depends

from cush.api.deps import require_capability
from cush.core.exceptions import ResourceNotFoundError, ValidationError
from cush.core.security import Capability, SessionClaims
from cush.schemas.email_templates import EmailTemplateRequest, TemplatePreviewRequest, TemplateTestRequest
from cush.services import email_template_service
from cush.services.email_service import EmailService, get_email_service

router = APIRouter()

manage_templates = require_capability(Capability.MANAGE_EMAIL_TEMPLATES)


@router.get("")
async def list_templates(session: SessionClaims = Depends(manage_templates)):
    return {"templates": await email_template_service.list_templates()}


@router.post("")
async def save_template(payload: EmailTemplateRequest, session: SessionClaims = Depends(manage_templates)):
    template = await email_template_service.save_template(
        payload.model_dump(exclude={"id"}), template_id=payload.id
    )
    return {"success": True, "template": template}


@router.post("/preview")
async def preview_template(payload: TemplatePreviewRequest, session: SessionClaims = Depends(manage_templates)):
    """
    Renders either inline html/subject or a named template.
    """
    html, subject = payload.html, payload.subject
    if html is None:
        if not payload.template_name:
            raise ValidationError("Provide html or templateName")
        template = await email_template_service.get_template_by_name(payload.template_name)
        if not template:
            raise ResourceNotFoundError("Email template not found")
        html, subject = template["html"], template["subject"]

    return {
        "html": email_template_service.render_template(html, payload.variables),
        "subject": email_template_service.render_text(subject or "", payload.variables),
    }


@router.post("/test")
async def send_test_email(
    payload: TemplateTestRequest,
    session: SessionClaims = Depends(manage_templates),
    email_service: EmailService = Depends(get_email_service)
):
    result = await email_service.send_template_email(payload.to, payload.template_name, payload.variables)
    return {"success": bool(result.get("success")), "result": result}


@router.get("/{template_id}")
async def get_template(template_id: str, session: SessionClaims = Depends(manage_templates)):
    return {"template": await email_template_service.get_template(template_id)}


@router.delete("/{template_id}")
async def delete_template(template_id: str, session: SessionClaims = Depends(manage_templates)):
    await email_template_service.delete_template(template_id)
    return {"success": True}
