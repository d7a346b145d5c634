"""
cush/schemas/email_templates.py

Purpose: Email template request schemas
"""

from typing import Any, Dict, List, Optional

from pydantic import EmailStr, Field

from cush.schemas.base import CamelModel


class EmailTemplateRequest(CamelModel):
    """
    Create or update a template. Include id to update an existing one.
    """
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")
    subject: str = Field(..., min_length=1)
    description: Optional[str] = ""
    html: str = Field(..., min_length=1)
    variables: List[str] = Field(default_factory=list)


class TemplatePreviewRequest(CamelModel):
    html: Optional[str] = None
    subject: Optional[str] = None
    template_name: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)


class TemplateTestRequest(CamelModel):
    template_name: str
    to: EmailStr
    variables: Dict[str, Any] = Field(default_factory=dict)
