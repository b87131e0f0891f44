"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def _user_id():
    return sa.Column(
        'user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
    )


def _contact_id():
    return sa.Column(
        'contact_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('contacts.id', ondelete='CASCADE'), nullable=False
    )


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Users
    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    # Contacts
    op.create_table(
        'contacts',
        _id(),
        _user_id(),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('position', sa.String(255), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('linkedin_url', sa.String(500), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('tags', postgresql.ARRAY(sa.String), nullable=False, server_default='{}'),
        sa.Column('source', sa.String(50), nullable=False, server_default='MANUAL'),
        sa.Column('last_contact', sa.DateTime(timezone=True), nullable=True),
        sa.Column('frequency', sa.Integer, nullable=False, server_default='0'),
        sa.Column('importance', sa.Integer, nullable=False, server_default='0'),
        sa.Column('contact_frequency_days', sa.Integer, nullable=True),
        sa.Column('metadata', postgresql.JSON, nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'email', name='uq_contacts_user_email'),
    )
    op.create_index('ix_contacts_user_id', 'contacts', ['user_id'])
    op.create_index('ix_contacts_email', 'contacts', ['email'])
    op.create_index('ix_contacts_deleted_at', 'contacts', ['deleted_at'])
    op.create_index('ix_contacts_user_last_contact', 'contacts', ['user_id', 'last_contact'])
    op.create_index('ix_contacts_user_importance', 'contacts', ['user_id', 'importance'])

    op.create_table(
        'contact_activities',
        _id(),
        _user_id(),
        _contact_id(),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('external_id', sa.String(255), nullable=True),
        sa.Column('metadata', postgresql.JSON, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('contact_id', 'external_id', name='uq_contact_activities_external'),
    )
    op.create_index('ix_contact_activities_user_id', 'contact_activities', ['user_id'])
    op.create_index('ix_contact_activities_contact_id', 'contact_activities', ['contact_id'])

    # Integrations
    op.create_table(
        'integrations',
        _id(),
        _user_id(),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('account_email', sa.String(255), nullable=True),
        sa.Column('access_token', sa.Text, nullable=True),
        sa.Column('refresh_token', sa.Text, nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scopes', postgresql.ARRAY(sa.String), nullable=False, server_default='{}'),
        sa.Column('metadata', postgresql.JSON, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'type', name='uq_integrations_user_type'),
    )
    op.create_index('ix_integrations_user_id', 'integrations', ['user_id'])

    op.create_table(
        'integration_links',
        _id(),
        sa.Column(
            'integration_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('integrations.id', ondelete='CASCADE'),
            nullable=False,
        ),
        _contact_id(),
        sa.Column('external_id', sa.String(255), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('integration_id', 'external_id', name='uq_integration_links_external'),
    )
    op.create_index('ix_integration_links_integration_id', 'integration_links', ['integration_id'])
    op.create_index('ix_integration_links_contact_id', 'integration_links', ['contact_id'])

    # Gmail sync
    op.create_table(
        'email_sync_configs',
        _id(),
        sa.Column(
            'user_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
        ),
        sa.Column('gmail_enabled', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('sync_enabled', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('privacy_mode', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('excluded_emails', postgresql.ARRAY(sa.String), nullable=False, server_default='{}'),
        sa.Column('excluded_domains', postgresql.ARRAY(sa.String), nullable=False, server_default='{}'),
        sa.Column('sync_history_days', sa.Integer, nullable=False, server_default='365'),
        sa.Column('history_id', sa.String(100), nullable=True),
        sa.Column('last_gmail_sync', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'email_threads',
        _id(),
        _user_id(),
        _contact_id(),
        sa.Column('thread_id', sa.String(255), nullable=True),
        sa.Column('external_id', sa.String(255), nullable=False),
        sa.Column('subject', sa.Text, nullable=True),
        sa.Column('snippet', sa.Text, nullable=True),
        sa.Column('body', sa.Text, nullable=True),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('participation_type', sa.String(10), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('source', sa.String(20), nullable=False, server_default='gmail'),
        sa.Column('metadata', postgresql.JSON, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('contact_id', 'external_id', name='uq_email_threads_contact_external'),
    )
    op.create_index('ix_email_threads_user_id', 'email_threads', ['user_id'])
    op.create_index('ix_email_threads_contact_occurred', 'email_threads', ['contact_id', 'occurred_at'])

    # Background jobs
    op.create_table(
        'import_jobs',
        _id(),
        _user_id(),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='queued'),
        sa.Column('total_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('processed_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('imported_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('skipped_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('failed_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('errors', postgresql.JSON, nullable=False, server_default='[]'),
        sa.Column('metadata', postgresql.JSON, nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('celery_task_id', sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_import_jobs_user_id', 'import_jobs', ['user_id'])
    op.create_index('ix_import_jobs_type', 'import_jobs', ['type'])
    op.create_index('ix_import_jobs_celery_task_id', 'import_jobs', ['celery_task_id'])

    # Reminders, notes, notifications
    op.create_table(
        'reminders',
        _id(),
        _user_id(),
        _contact_id(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text, nullable=True),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=True),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('frequency_days', sa.Integer, nullable=True),
        sa.Column('priority', sa.Integer, nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('snoozed_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_reminders_user_id', 'reminders', ['user_id'])
    op.create_index('ix_reminders_contact_id', 'reminders', ['contact_id'])
    op.create_index('ix_reminders_user_status_due', 'reminders', ['user_id', 'status', 'due_at'])

    op.create_table(
        'notes',
        _id(),
        _user_id(),
        _contact_id(),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('is_pinned', sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_notes_user_id', 'notes', ['user_id'])
    op.create_index('ix_notes_contact_id', 'notes', ['contact_id'])

    op.create_table(
        'notifications',
        _id(),
        _user_id(),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('metadata', postgresql.JSON, nullable=True),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])

    # AI
    op.create_table(
        'ai_insights',
        _id(),
        _user_id(),
        sa.Column(
            'contact_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('contacts.id', ondelete='CASCADE'),
            nullable=True,
        ),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('confidence', sa.Float, nullable=False, server_default='1.0'),
        sa.Column('metadata', postgresql.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_ai_insights_user_id', 'ai_insights', ['user_id'])
    op.create_index('ix_ai_insights_contact_id', 'ai_insights', ['contact_id'])

    op.create_table(
        'generated_icebreakers',
        _id(),
        _user_id(),
        _contact_id(),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('tone', sa.String(20), nullable=False),
        sa.Column('trigger_event', sa.Text, nullable=True),
        sa.Column('variations', postgresql.JSON, nullable=False),
        sa.Column('selected', postgresql.JSON, nullable=True),
        sa.Column('edited', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('edited_content', sa.Text, nullable=True),
        sa.Column('feedback', sa.String(30), nullable=True),
        sa.Column('sent', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('llm_provider', sa.String(30), nullable=False, server_default='anthropic'),
        sa.Column('model_version', sa.String(100), nullable=False),
        sa.Column('prompt_version', sa.String(20), nullable=False),
        sa.Column('tokens_used', sa.Integer, nullable=False, server_default='0'),
        sa.Column('context_data', postgresql.JSON, nullable=True),
        sa.Column('generation_time_ms', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_generated_icebreakers_user_id', 'generated_icebreakers', ['user_id'])
    op.create_index('ix_generated_icebreakers_contact_id', 'generated_icebreakers', ['contact_id'])


def downgrade() -> None:
    op.drop_table('generated_icebreakers')
    op.drop_table('ai_insights')
    op.drop_table('notifications')
    op.drop_table('notes')
    op.drop_table('reminders')
    op.drop_table('import_jobs')
    op.drop_table('email_threads')
    op.drop_table('email_sync_configs')
    op.drop_table('integration_links')
    op.drop_table('integrations')
    op.drop_table('contact_activities')
    op.drop_table('contacts')
    op.drop_table('users')
