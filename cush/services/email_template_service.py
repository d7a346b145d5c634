"""
cush/services/email_template_service.py

Purpose: Email template storage and rendering

- Built-in default templates used whenever no stored template overrides them
- Template CRUD in the key-value store (record + name pointer + index set)
- Minimal placeholder rendering: {{var}}, {{#if var}}...{{/if}}, {{#each list}}...{{this}}...{{/each}}
"""

import re
import uuid
from typing import Any, Dict, List, Optional

from cush.core.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from cush.core.logging import get_logger
from cush.db import keys
from cush.db.redis_client import get_store
from utils.time_utils import utc_now_iso

logger = get_logger(__name__)

FALLBACK_PREFIX = "fallback-"

_BUTTON_STYLE = (
    "background-color: #0ea5e9; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 4px; font-weight: bold;"
)


def _layout(heading: str, body: str, button_url: str, button_label: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h1 style="color: #0ea5e9;">{heading}</h1>
      <p>Hello {{{{name}}}},</p>
      {body}
      <div style="text-align: center; margin: 30px 0;">
        <a href="{{{{{button_url}}}}}" style="{_BUTTON_STYLE}">{button_label}</a>
      </div>
      <p>If you have any questions, please don't hesitate to contact our support team.</p>
      <p>Best regards,<br>The Cush Team</p>
    </div>
    """


DEFAULT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "welcome",
        "subject": "Welcome to Cush",
        "description": "Sent to new users upon registration",
        "html": _layout(
            "Welcome to Cush!",
            "<p>Thank you for joining Cush. We're excited to help you with your migration and financial needs.</p>\n"
            "      <p>You can now access your dashboard to explore our services:</p>",
            "dashboardUrl",
            "Go to Dashboard",
        ),
        "variables": ["name", "dashboardUrl"],
    },
    {
        "name": "emailVerification",
        "subject": "Verify your Cush email address",
        "description": "Sent on registration and when a user asks for a new verification link",
        "html": _layout(
            "Verify your email",
            "<p>Please confirm your email address to finish setting up your account.</p>\n"
            "      <p>This link expires in 24 hours.</p>",
            "verificationUrl",
            "Verify Email",
        ),
        "variables": ["name", "verificationUrl"],
    },
    {
        "name": "applicationUpdate",
        "subject": "{{applicationType}} Application Update",
        "description": "Notifies users of application status changes",
        "html": _layout(
            "{{applicationType}} Application Update",
            "<p>Your {{applicationType}} application status has been updated to: <strong>{{status}}</strong></p>\n"
            "      {{#if details}}<p>{{details}}</p>{{/if}}",
            "dashboardUrl",
            "View Application",
        ),
        "variables": ["name", "applicationType", "status", "details", "dashboardUrl"],
    },
    {
        "name": "documentRequest",
        "subject": "Documents Required for Your {{applicationType}} Application",
        "description": "Requests additional documents from users",
        "html": _layout(
            "Documents Required",
            "<p>To proceed with your {{applicationType}} application, we need the following documents:</p>\n"
            "      <ul>{{#each documents}}<li>{{this}}</li>{{/each}}</ul>",
            "uploadUrl",
            "Upload Documents",
        ),
        "variables": ["name", "applicationType", "documents", "uploadUrl"],
    },
    {
        "name": "flightConfirmation",
        "subject": "Your flight {{origin}} → {{destination}} is confirmed",
        "description": "Sent when a flight booking is confirmed",
        "html": _layout(
            "Booking Confirmed",
            "<p>Your flight from {{origin}} to {{destination}} on {{departureDate}} is confirmed.</p>\n"
            "      <p>Booking reference: <strong>{{reference}}</strong></p>",
            "bookingUrl",
            "View Booking",
        ),
        "variables": ["name", "origin", "destination", "departureDate", "reference", "bookingUrl"],
    },
]

DEFAULT_TEMPLATE_NAMES = {template["name"] for template in DEFAULT_TEMPLATES}


def _fallback_template(name: str) -> Optional[Dict[str, Any]]:
    for template in DEFAULT_TEMPLATES:
        if template["name"] == name:
            now = utc_now_iso()
            return {
                **template,
                "id": f"{FALLBACK_PREFIX}{name}",
                "isDefault": True,
                "createdAt": now,
                "updatedAt": now,
            }
    return None


# ============================================================================
# Rendering
# ============================================================================

_IF_BLOCK = re.compile(r"{{#if ([^}]+)}}([\s\S]*?){{/if}}")
_EACH_BLOCK = re.compile(r"{{#each ([^}]+)}}([\s\S]*?){{/each}}")


def render_text(text: str, variables: Dict[str, Any]) -> str:
    """Substitute {{key}} for every string or number variable."""
    for key, value in variables.items():
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            text = text.replace(f"{{{{{key}}}}}", str(value))
    return text


def render_template(html: str, variables: Dict[str, Any]) -> str:
    """
    Render a template body.

    Args:
        html: Template source
        variables: Values for placeholders, conditions and loops

    Returns:
        Rendered HTML. Unknown placeholders are left untouched.
    """
    html = render_text(html, variables)

    def _if(match: re.Match) -> str:
        return match.group(2) if variables.get(match.group(1).strip()) else ""

    def _each(match: re.Match) -> str:
        items = variables.get(match.group(1).strip())
        if not isinstance(items, list):
            return ""
        content = match.group(2)
        rendered = []
        for item in items:
            if isinstance(item, dict):
                chunk = content
                for key, value in item.items():
                    chunk = chunk.replace(f"{{{{this.{key}}}}}", str(value))
                rendered.append(chunk)
            elif isinstance(item, (str, int, float)):
                rendered.append(content.replace("{{this}}", str(item)))
        return "".join(rendered)

    html = _IF_BLOCK.sub(_if, html)
    html = _EACH_BLOCK.sub(_each, html)
    return html


# ============================================================================
# Storage
# ============================================================================

async def get_template(template_id: str) -> Dict[str, Any]:
    """
    Fetch a template by id. Fallback ids resolve to the built-in default.

    Raises:
        ResourceNotFoundError: If no such template exists
    """
    if template_id.startswith(FALLBACK_PREFIX):
        template = _fallback_template(template_id[len(FALLBACK_PREFIX):])
    else:
        template = await get_store().get_json(keys.email_template_key(template_id))

    if not template:
        raise ResourceNotFoundError("Email template not found")
    return template


async def get_template_by_name(name: str) -> Optional[Dict[str, Any]]:
    """
    Stored template for a name, or the built-in default when none is stored.
    """
    store = get_store()
    template_id = await store.get(keys.email_template_name_key(name))
    if template_id:
        template = await store.get_json(keys.email_template_key(template_id))
        if template:
            return template
        logger.warning(f"Dangling template pointer for '{name}'")

    template = _fallback_template(name)
    if template is None:
        logger.warning(f"No template found for '{name}'")
    return template


async def list_templates() -> List[Dict[str, Any]]:
    """
    All stored templates plus any default not overridden by a stored one.
    """
    store = get_store()
    templates = []
    for template_id in await store.smembers(keys.EMAIL_TEMPLATE_INDEX):
        template = await store.get_json(keys.email_template_key(template_id))
        if template:
            templates.append(template)

    stored_names = {t["name"] for t in templates}
    for name in DEFAULT_TEMPLATE_NAMES - stored_names:
        templates.append(_fallback_template(name))

    return sorted(templates, key=lambda t: t["name"])


async def save_template(data: Dict[str, Any], template_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Create or update a stored template.

    Saving over a fallback id stores an override for that default.

    Args:
        data: name, subject, html, and optional description/variables
        template_id: Existing stored template to update

    Returns:
        The stored template

    Raises:
        ConflictError: If another stored template already uses the name
        ResourceNotFoundError: If template_id does not exist
    """
    store = get_store()
    name = data["name"]
    now = utc_now_iso()

    existing = None
    if template_id and not template_id.startswith(FALLBACK_PREFIX):
        existing = await store.get_json(keys.email_template_key(template_id))
        if not existing:
            raise ResourceNotFoundError("Email template not found")

    owner = await store.get(keys.email_template_name_key(name))
    if owner and (existing is None or owner != existing["id"]):
        raise ConflictError(f"A template named '{name}' already exists")

    template = {
        "id": existing["id"] if existing else str(uuid.uuid4()),
        "name": name,
        "subject": data["subject"],
        "description": data.get("description") or "",
        "html": data["html"],
        "variables": list(data.get("variables") or []),
        "isDefault": False,
        "createdAt": existing["createdAt"] if existing else now,
        "updatedAt": now,
    }

    if existing and existing["name"] != name:
        await store.delete(keys.email_template_name_key(existing["name"]))

    await store.set_json(keys.email_template_key(template["id"]), template)
    await store.set(keys.email_template_name_key(name), template["id"])
    await store.sadd(keys.EMAIL_TEMPLATE_INDEX, template["id"])

    logger.info(f"Email template saved: {name}", extra={"template_id": template["id"]})
    return template


async def delete_template(template_id: str) -> None:
    """
    Delete a stored template.

    Raises:
        ValidationError: For built-in default templates
        ResourceNotFoundError: If the template does not exist
    """
    if template_id.startswith(FALLBACK_PREFIX):
        raise ValidationError("Default templates cannot be deleted")

    store = get_store()
    template = await store.get_json(keys.email_template_key(template_id))
    if not template:
        raise ResourceNotFoundError("Email template not found")
    if template.get("isDefault"):
        raise ValidationError("Default templates cannot be deleted")

    await store.delete(keys.email_template_key(template_id))
    await store.srem(keys.EMAIL_TEMPLATE_INDEX, template_id)
    if await store.get(keys.email_template_name_key(template["name"])) == template_id:
        await store.delete(keys.email_template_name_key(template["name"]))

    logger.info(f"Email template deleted: {template['name']}")
