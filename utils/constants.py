"""
utils/constants.py

Purpose: Centralized static values

- Record statuses for documents, applications, payments and bookings
- Police certificate pricing
- Notification types and user-facing notification copy
- The Imisi assistant system prompt

(Prevents hardcoding across the codebase)
"""

# ============================================================
# DOCUMENTS
# ============================================================

DOCUMENT_PENDING = "pending"
DOCUMENT_APPROVED = "approved"
DOCUMENT_REJECTED = "rejected"

DOCUMENT_STATUSES = (DOCUMENT_PENDING, DOCUMENT_APPROVED, DOCUMENT_REJECTED)

ALLOWED_UPLOAD_CONTENT_TYPES = (
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)


# ============================================================
# APPLICATIONS
# ============================================================

APPLICATION_PENDING = "pending"
APPLICATION_PENDING_PAYMENT = "pending_payment"
APPLICATION_PROCESSING = "processing"
APPLICATION_APPROVED = "approved"
APPLICATION_REJECTED = "rejected"

# Statuses the back office counts as awaiting action, per application type
LOAN_PENDING_STATUSES = (APPLICATION_PENDING,)
POLICE_CERTIFICATE_PENDING_STATUSES = (APPLICATION_PENDING, APPLICATION_PENDING_PAYMENT)

POLICE_CERTIFICATE_PRICES = {
    "standard": 100,
    "express": 150,
    "urgent": 200,
}
COURIER_DELIVERY_FEE = 30


# ============================================================
# PAYMENTS
# ============================================================

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"

PAYMENT_CURRENCY = "usd"


# ============================================================
# FLIGHT BOOKINGS
# ============================================================

BOOKING_PENDING = "pending"
BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"

CABIN_MULTIPLIERS = {
    "economy": 1.0,
    "premium": 1.5,
    "business": 3.0,
    "first": 5.0,
}


# ============================================================
# CONSULTATIONS
# ============================================================

CONSULTATION_UPCOMING = "upcoming"

CONSULTATION_TYPES = {
    "migration-uk": "UK Migration Consultation",
    "migration-global": "Global Migration Consultation",
    "financial-planning": "Financial Planning Consultation",
    "regulatory-compliance": "Regulatory Compliance Consultation",
}


# ============================================================
# NOTIFICATIONS
# ============================================================

NOTIFICATION_INFO = "info"
NOTIFICATION_SUCCESS = "success"
NOTIFICATION_WARNING = "warning"
NOTIFICATION_ERROR = "error"

NOTIFICATION_TYPES = (NOTIFICATION_INFO, NOTIFICATION_SUCCESS, NOTIFICATION_WARNING, NOTIFICATION_ERROR)

DOCUMENT_UPLOADED_TITLE = "Document Uploaded"
DOCUMENT_UPLOADED_MESSAGE = "Your document \"{name}\" has been uploaded and is pending review."

DOCUMENT_REVIEWED_TITLE = "Document {status}"
DOCUMENT_REVIEWED_MESSAGE = "Your document \"{name}\" has been {status}."

PAYMENT_RECEIVED_TITLE = "Payment Received"
PAYMENT_RECEIVED_MESSAGE = "We received your payment of ${amount}. Your application is now being processed."

BOOKING_CONFIRMED_TITLE = "Flight Booked"
BOOKING_CONFIRMED_MESSAGE = "Your flight {origin} → {destination} is confirmed. Booking reference: {reference}."


# ============================================================
# ACTIVITY LOG
# ============================================================

MAX_ACTIVITIES_PER_USER = 100


# ============================================================
# IMISI ASSISTANT
# ============================================================

IMISI_SYSTEM_PROMPT = """You are Imisi, Cush's migration advisor. You help people plan a move abroad, \
with particular depth on UK immigration and a working knowledge of other popular destinations \
(Canada, the United States, the European Union, the Gulf states and Australia).

You can explain:
- Visa routes and eligibility (work, study, family, visitor and settlement routes)
- Required documents, English-language and financial requirements
- Typical processing times and costs
- Police certificates, proof of funds and travel planning
- Practical settling-in advice: housing, banking, healthcare and schooling

Be warm, clear and concise. When rules depend on personal circumstances or change often, \
say so and recommend checking the official government source or a regulated adviser. \
Never invent fees, deadlines or legal requirements you are not sure of."""
