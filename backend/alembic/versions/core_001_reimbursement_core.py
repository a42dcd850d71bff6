"""Core: projects, assignments, quotes, price caps, reimbursements, audit, notifications

Revision ID: core_001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = 'core_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Identity mapping ---
    op.create_table('user_roles',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])

    op.create_table('consultants',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('home_location', sa.String(length=255), nullable=True),
        sa.Column('base_airport', sa.String(length=10), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_consultants_user_id', 'consultants', ['user_id'], unique=True)

    # --- Projects and assignments ---
    op.create_table('projects',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('client_name', sa.String(length=255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('project_assignments',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('project_id', sa.UUID(), nullable=False),
        sa.Column('consultant_id', sa.UUID(), nullable=False),
        sa.Column('travel_from_location', sa.String(length=100), nullable=False),
        sa.Column('travel_to_location', sa.String(length=100), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=False),
        sa.Column('return_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['consultant_id'], ['consultants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_project_assignments_project_id', 'project_assignments', ['project_id'])
    op.create_index('ix_project_assignments_consultant_id', 'project_assignments', ['consultant_id'])

    # --- Quote searches and quotes ---
    op.create_table('quote_searches',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('assignment_id', sa.UUID(), nullable=False),
        sa.Column('kind', sa.String(length=10), nullable=False, server_default='flight'),
        sa.Column('provider', sa.String(length=50), nullable=True),
        sa.Column('search_params', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('results_count', sa.Integer(), nullable=True),
        sa.Column('executed_by', sa.UUID(), nullable=True),
        sa.Column('executed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['assignment_id'], ['project_assignments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_quote_searches_assignment_kind_executed',
        'quote_searches',
        ['assignment_id', 'kind', 'executed_at'],
    )

    op.create_table('quotes',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('search_id', sa.UUID(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('provider', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=300), nullable=True),
        sa.Column('cabin_class', sa.String(length=30), nullable=True),
        sa.Column('departs_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('arrives_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('return_departs_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('return_arrives_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('layovers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('refundable', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('baggage_included', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('insurance_included', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('booking_reference', sa.String(length=200), nullable=True),
        sa.Column('booking_url', sa.String(length=1000), nullable=True),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['search_id'], ['quote_searches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('price > 0', name='ck_quotes_price_positive'),
    )
    op.create_index('ix_quotes_search_price', 'quotes', ['search_id', 'price'])

    # --- Price caps (append-only) ---
    op.create_table('assignment_price_caps',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('assignment_id', sa.UUID(), nullable=False),
        sa.Column('max_approved_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('search_id', sa.UUID(), nullable=True),
        sa.Column('quote_id', sa.UUID(), nullable=True),
        sa.Column('set_by', sa.UUID(), nullable=True),
        sa.Column('set_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['assignment_id'], ['project_assignments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['search_id'], ['quote_searches.id']),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_assignment_price_caps_assignment_set',
        'assignment_price_caps',
        ['assignment_id', 'set_at'],
    )
    op.create_index('ix_assignment_price_caps_search_id', 'assignment_price_caps', ['search_id'])

    # --- Reimbursements ---
    op.create_table('reimbursement_requests',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('assignment_id', sa.UUID(), nullable=False),
        sa.Column('consultant_id', sa.UUID(), nullable=False),
        sa.Column('submitted_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('approved_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('price_cap_id', sa.UUID(), nullable=True),
        sa.Column('submission_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('review_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.UUID(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['assignment_id'], ['project_assignments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['consultant_id'], ['consultants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['price_cap_id'], ['assignment_price_caps.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('submitted_amount > 0', name='ck_reimbursement_submitted_positive'),
        sa.CheckConstraint(
            'approved_amount IS NULL OR approved_amount <= submitted_amount',
            name='ck_reimbursement_approved_le_submitted',
        ),
    )
    op.create_index('ix_reimbursement_requests_assignment_id', 'reimbursement_requests', ['assignment_id'])
    op.create_index(
        'ix_reimbursement_requests_consultant_submitted',
        'reimbursement_requests',
        ['consultant_id', 'submission_date'],
    )
    op.create_index('ix_reimbursement_requests_status', 'reimbursement_requests', ['status'])

    op.create_table('reimbursement_attachments',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('reimbursement_id', sa.UUID(), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_url', sa.String(length=1000), nullable=False),
        sa.Column('file_type', sa.String(length=100), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['reimbursement_id'], ['reimbursement_requests.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reimbursement_attachments_reimbursement_id', 'reimbursement_attachments', ['reimbursement_id'])

    # --- Audit trail ---
    op.create_table('audit_logs',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=True),
        sa.Column('entity_id', sa.UUID(), nullable=True),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('assignment_id', sa.UUID(), nullable=True),
        sa.Column('consultant_id', sa.UUID(), nullable=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])

    # --- Notifications ---
    op.create_table('notifications',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.UUID(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('audit_logs')
    op.drop_table('reimbursement_attachments')
    op.drop_table('reimbursement_requests')
    op.drop_table('assignment_price_caps')
    op.drop_table('quotes')
    op.drop_table('quote_searches')
    op.drop_table('project_assignments')
    op.drop_table('projects')
    op.drop_table('consultants')
    op.drop_table('user_roles')
