"""
String enumerations stored in VARCHAR columns.
"""

import enum


class ContactSource(str, enum.Enum):
    MANUAL = "MANUAL"
    IMPORT = "IMPORT"
    EMAIL = "EMAIL"
    GOOGLE_CONTACTS = "GOOGLE_CONTACTS"
    CALENDAR = "CALENDAR"
    API = "API"


class IntegrationType(str, enum.Enum):
    GMAIL = "GMAIL"
    GOOGLE_CONTACTS = "GOOGLE_CONTACTS"
    GOOGLE_CALENDAR = "GOOGLE_CALENDAR"

    @property
    def slug(self) -> str:
        """URL path segment used by the integrations router."""
        return self.value.lower().replace("_", "-")

    @classmethod
    def from_slug(cls, slug: str) -> "IntegrationType":
        for member in cls:
            if member.slug == slug:
                return member
        raise ValueError(f"Unknown integration provider: {slug}")


class EmailDirection(str, enum.Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class ParticipationType(str, enum.Enum):
    SENDER = "SENDER"
    RECIPIENT = "RECIPIENT"
    CC = "CC"


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(str, enum.Enum):
    GMAIL_EMAIL_SYNC = "gmail_email_sync"
    GOOGLE_CONTACTS = "google_contacts"
    GOOGLE_CALENDAR_SYNC = "google_calendar_sync"


class ReminderStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    SNOOZED = "SNOOZED"
    COMPLETED = "COMPLETED"
    DISMISSED = "DISMISSED"


class NotificationType(str, enum.Enum):
    REMINDER = "REMINDER"
    INSIGHT = "INSIGHT"
    INTEGRATION_SYNC = "INTEGRATION_SYNC"
    SYSTEM = "SYSTEM"
    SUGGESTION = "SUGGESTION"


class InsightType(str, enum.Enum):
    RELATIONSHIP_STRENGTH = "RELATIONSHIP_STRENGTH"
    CONTACT_RECOMMENDATION = "CONTACT_RECOMMENDATION"
    INTERACTION_PATTERN = "INTERACTION_PATTERN"
    IMPORTANCE_CHANGE = "IMPORTANCE_CHANGE"
    NETWORKING_OPPORTUNITY = "NETWORKING_OPPORTUNITY"
    FOLLOW_UP_SUGGESTION = "FOLLOW_UP_SUGGESTION"


class ActivityType(str, enum.Enum):
    EMAIL = "EMAIL"
    CALL = "CALL"
    MEETING = "MEETING"
    NOTE = "NOTE"
    MESSAGE = "MESSAGE"
    OTHER = "OTHER"


class Channel(str, enum.Enum):
    EMAIL = "email"
    LINKEDIN = "linkedin"
    WHATSAPP = "whatsapp"


class Tone(str, enum.Enum):
    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"
    CASUAL = "casual"


class Feedback(str, enum.Enum):
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"
    NEEDS_IMPROVEMENT = "needs_improvement"
