"""
SQLAlchemy models package.
All models are imported here for Alembic auto-generation to detect changes.
"""

from src.models.base import Base
from src.models.contact import Contact, ContactActivity
from src.models.email_sync import EmailSyncConfig, EmailThread
from src.models.insight import AIInsight, GeneratedIcebreaker
from src.models.integration import Integration, IntegrationLink
from src.models.job import ImportJob
from src.models.note import Note, Notification
from src.models.reminder import Reminder
from src.models.user import User

__all__ = [
    "Base",
    "User",
    "Contact",
    "ContactActivity",
    "Integration",
    "IntegrationLink",
    "EmailSyncConfig",
    "EmailThread",
    "ImportJob",
    "Reminder",
    "Note",
    "Notification",
    "AIInsight",
    "GeneratedIcebreaker",
]
