"""
cush/db/keys.py

Purpose: Key layout for every record in the key-value store

- One function per record/index key so the layout lives in one place
- Helpers to tell primary records apart from derived index keys during prefix scans
"""

USER_PREFIX = "user"
DOCUMENT_PREFIX = "document"
APPLICATION_PREFIX = "application"

LOAN = "loan"
POLICE_CERTIFICATE = "police-certificate"
APPLICATION_TYPES = (LOAN, POLICE_CERTIFICATE)


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def user_email_key(email: str) -> str:
    """Email → user id pointer. Callers pass an already-normalized email."""
    return f"user:email:{email}"


def user_documents_key(user_id: str) -> str:
    return f"user:{user_id}:documents"


def user_notifications_key(user_id: str) -> str:
    return f"user:{user_id}:notifications"


def user_activities_key(user_id: str) -> str:
    return f"user:{user_id}:activities"


def user_verification_key(user_id: str) -> str:
    return f"user:{user_id}:verification"


def user_events_key(user_id: str) -> str:
    return f"user:{user_id}:events"


def user_flight_bookings_key(user_id: str) -> str:
    return f"user:{user_id}:flight-bookings"


def user_consultations_key(user_id: str) -> str:
    return f"user:{user_id}:consultations"


def activity_key(activity_id: str) -> str:
    return f"activity:{activity_id}"


def verification_key(token: str) -> str:
    return f"verification:{token}"


def document_key(document_id: str) -> str:
    return f"document:{document_id}"


def application_key(application_type: str, application_id: str) -> str:
    return f"application:{application_type}:{application_id}"


def application_documents_key(application_type: str, application_id: str) -> str:
    return f"application:{application_type}:{application_id}:documents"


def payment_key(payment_id: str) -> str:
    return f"payment:{payment_id}"


def notification_key(notification_id: str) -> str:
    return f"notification:{notification_id}"


def email_template_key(template_id: str) -> str:
    return f"email-template:{template_id}"


def email_template_name_key(name: str) -> str:
    return f"email-template:name:{name}"


EMAIL_TEMPLATE_INDEX = "email-templates"


def flight_booking_key(booking_id: str) -> str:
    return f"flight-booking:{booking_id}"


def consultation_key(consultation_id: str) -> str:
    return f"consultation:{consultation_id}"


# ============================================================================
# Scan patterns and record-key predicates
# ============================================================================

def user_scan_pattern() -> str:
    return "user:*"


def document_scan_pattern() -> str:
    return "document:*"


def application_scan_pattern(application_type: str) -> str:
    return f"application:{application_type}:*"


def is_user_record_key(key: str) -> bool:
    """user:<id> only; email pointers and user:<id>:<sub> lists are index keys."""
    parts = key.split(":")
    return len(parts) == 2 and parts[0] == USER_PREFIX and parts[1] != ""


def is_document_record_key(key: str) -> bool:
    parts = key.split(":")
    return len(parts) == 2 and parts[0] == DOCUMENT_PREFIX and parts[1] != ""


def is_application_record_key(key: str, application_type: str) -> bool:
    """application:<type>:<id> only; the :documents lists are skipped."""
    prefix = f"{APPLICATION_PREFIX}:{application_type}:"
    if not key.startswith(prefix):
        return False
    remainder = key[len(prefix):]
    return remainder != "" and ":" not in remainder
