"""Initial ROAM platform schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Businesses, onboarding progress, provider applications and phase-2 links,
providers and admins, documents, catalog pricing, payout accounts,
bookings, reviews and the audit log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'businesstype': ('independent', 'small_business', 'franchise', 'enterprise', 'other'),
    'verificationstatus': ('pending', 'approved', 'rejected', 'suspended'),
    'providerrole': ('owner', 'dispatcher', 'provider'),
    'backgroundcheckstatus': ('not_started', 'pending', 'passed', 'failed'),
    'applicationstatus': ('submitted', 'approved', 'rejected'),
    'reviewstatus': ('pending', 'approved', 'rejected'),
    'documenttype': (
        'liability_insurance', 'professional_license', 'professional_certificate',
        'business_license', 'drivers_license', 'proof_of_address',
    ),
    'documentstatus': ('pending', 'under_review', 'approved', 'rejected'),
    'deliverytype': ('business_location', 'customer_location', 'virtual', 'both_locations'),
    'bookingstatus': (
        'pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'declined', 'no_show',
    ),
    'paymentstatus': ('pending', 'paid', 'refunded', 'failed'),
    'auditaction': (
        'application_submitted', 'application_approved', 'application_rejected',
        'business_approved', 'business_rejected', 'business_suspended',
        'document_uploaded', 'document_verified', 'document_rejected',
        'review_approved', 'review_unapproved', 'review_featured', 'review_unfeatured',
        'booking_status_changed', 'onboarding_completed', 'staff_invited', 'staff_joined',
    ),
}


def enum(name: str) -> postgresql.ENUM:
    """Column type for an enum created up front in ``upgrade``."""
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def uuid_pk() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def business_fk(index: bool = True, unique: bool = False) -> sa.Column:
    return sa.Column(
        'business_id',
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey('business_profiles.id', ondelete='CASCADE'),
        nullable=False,
        index=index,
        unique=unique,
    )


def moderation_columns() -> list:
    return [
        sa.Column('moderated_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('moderated_at', sa.DateTime(), nullable=True),
        sa.Column('moderation_notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    ]


def upgrade() -> None:
    # Enum types (IF NOT EXISTS)
    for name, values in ENUMS.items():
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(f"""
            DO $$ BEGIN
                CREATE TYPE {name} AS ENUM ({labels});
            EXCEPTION WHEN duplicate_object THEN NULL;
            END $$;
        """)

    # === BUSINESSES ===
    op.create_table(
        'business_profiles',
        uuid_pk(),
        sa.Column('business_name', sa.String(255), nullable=False),
        sa.Column('business_type', enum('businesstype'), nullable=False),
        sa.Column('contact_email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('website_url', sa.String(500), nullable=True),
        sa.Column('business_description', sa.Text(), nullable=True),
        sa.Column('service_categories', postgresql.JSONB(), nullable=True),
        sa.Column('service_subcategories', postgresql.JSONB(), nullable=True),
        sa.Column('business_hours', postgresql.JSONB(), nullable=True),
        sa.Column('verification_status', enum('verificationstatus'), nullable=False, server_default='pending', index=True),
        sa.Column('identity_verified', sa.Boolean(), server_default=sa.false()),
        sa.Column('identity_verification_session_id', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.false()),
        sa.Column('setup_step', sa.Integer(), server_default='0'),
        sa.Column('setup_completed', sa.Boolean(), server_default=sa.false()),
        sa.Column('application_submitted_at', sa.DateTime(), nullable=True),
        *moderation_columns(),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'business_setup_progress',
        uuid_pk(),
        business_fk(index=False, unique=True),
        sa.Column('current_step', sa.Integer(), server_default='1'),
        sa.Column('completed_steps', postgresql.JSONB(), nullable=True),
        sa.Column('step_data', postgresql.JSONB(), nullable=True),
        sa.Column('phase_1_completed', sa.Boolean(), server_default=sa.false()),
        sa.Column('phase_1_completed_at', sa.DateTime(), nullable=True),
        sa.Column('phase_2_completed', sa.Boolean(), server_default=sa.false()),
        sa.Column('phase_2_completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # === APPLICATIONS ===
    op.create_table(
        'provider_applications',
        uuid_pk(),
        business_fk(),
        sa.Column('user_id', sa.String(128), nullable=False, index=True),
        sa.Column('application_status', enum('applicationstatus'), nullable=False, server_default='submitted'),
        sa.Column('review_status', enum('reviewstatus'), nullable=False, server_default='pending'),
        sa.Column('consents_given', postgresql.JSONB(), nullable=True),
        sa.Column('submission_metadata', postgresql.JSONB(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        *moderation_columns(),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'application_approvals',
        uuid_pk(),
        business_fk(),
        sa.Column('application_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('provider_applications.id', ondelete='CASCADE'), nullable=False),
        sa.Column('approved_by', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('approval_notes', sa.Text(), nullable=True),
        sa.Column('token_hash', sa.String(64), nullable=False, unique=True),
        sa.Column('token_expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # === PEOPLE ===
    op.create_table(
        'providers',
        uuid_pk(),
        business_fk(),
        sa.Column('user_id', sa.String(128), nullable=False, index=True),
        sa.Column('provider_role', enum('providerrole'), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('verification_status', enum('verificationstatus'), nullable=False, server_default='pending'),
        sa.Column('background_check_status', enum('backgroundcheckstatus'), nullable=False, server_default='not_started'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'admin_users',
        uuid_pk(),
        sa.Column('user_id', sa.String(128), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # === DOCUMENTS ===
    op.create_table(
        'business_documents',
        uuid_pk(),
        business_fk(),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('document_type', enum('documenttype'), nullable=False),
        sa.Column('document_name', sa.String(255), nullable=False),
        sa.Column('file_url', sa.String(1024), nullable=False),
        sa.Column('storage_path', sa.String(1024), nullable=False),
        sa.Column('file_size_bytes', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('verification_status', enum('documentstatus'), nullable=False, server_default='pending'),
        sa.Column('verified_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # === CATALOG ===
    op.create_table(
        'services',
        uuid_pk(),
        sa.Column('subcategory_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('min_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'service_addons',
        uuid_pk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'business_services',
        uuid_pk(),
        business_fk(),
        sa.Column('service_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('business_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('business_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('delivery_type', enum('deliverytype'), nullable=False, server_default='customer_location'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('business_id', 'service_id', name='uq_business_service'),
        sa.CheckConstraint('business_price > 0', name='ck_business_services_price_positive'),
    )

    op.create_table(
        'business_addons',
        uuid_pk(),
        business_fk(),
        sa.Column('addon_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('service_addons.id', ondelete='CASCADE'), nullable=False),
        sa.Column('custom_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('is_available', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('business_id', 'addon_id', name='uq_business_addon'),
    )

    # === PAYOUTS ===
    op.create_table(
        'plaid_bank_connections',
        uuid_pk(),
        business_fk(index=False, unique=True),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('plaid_access_token', sa.String(255), nullable=False),
        sa.Column('plaid_item_id', sa.String(255), nullable=False),
        sa.Column('plaid_account_id', sa.String(255), nullable=False),
        sa.Column('institution_name', sa.String(255), nullable=True),
        sa.Column('account_name', sa.String(255), nullable=True),
        sa.Column('account_mask', sa.String(10), nullable=True),
        sa.Column('account_type', sa.String(50), nullable=True),
        sa.Column('account_subtype', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('connected_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # === BOOKINGS ===
    op.create_table(
        'bookings',
        uuid_pk(),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        business_fk(),
        sa.Column('provider_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('providers.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('service_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('services.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False, index=True),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('booking_status', enum('bookingstatus'), nullable=False, server_default='pending', index=True),
        sa.Column('payment_status', enum('paymentstatus'), nullable=False, server_default='pending'),
        sa.Column('original_booking_date', sa.Date(), nullable=True),
        sa.Column('original_start_time', sa.Time(), nullable=True),
        sa.Column('reschedule_reason', sa.Text(), nullable=True),
        sa.Column('rescheduled_at', sa.DateTime(), nullable=True),
        sa.Column('reschedule_count', sa.Integer(), server_default='0'),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_by', sa.String(128), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # === REVIEWS ===
    op.create_table(
        'reviews',
        uuid_pk(),
        sa.Column('booking_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, unique=True),
        business_fk(),
        sa.Column('provider_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('providers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('overall_rating', sa.Integer(), nullable=False),
        sa.Column('service_rating', sa.Integer(), nullable=True),
        sa.Column('communication_rating', sa.Integer(), nullable=True),
        sa.Column('punctuality_rating', sa.Integer(), nullable=True),
        sa.Column('review_text', sa.Text(), nullable=True),
        sa.Column('is_approved', sa.Boolean(), server_default=sa.false()),
        sa.Column('is_featured', sa.Boolean(), server_default=sa.false()),
        *moderation_columns(),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('overall_rating BETWEEN 1 AND 5', name='ck_reviews_overall_rating'),
        sa.CheckConstraint('NOT is_featured OR is_approved', name='ck_reviews_featured_approved'),
    )

    # === AUDIT LOG ===
    op.create_table(
        'audit_log',
        uuid_pk(),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column('actor_id', sa.String(128), nullable=True, index=True),
        sa.Column('action', enum('auditaction'), nullable=False, index=True),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('details', postgresql.JSONB(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    for table in (
        'audit_log',
        'reviews',
        'bookings',
        'plaid_bank_connections',
        'business_addons',
        'business_services',
        'service_addons',
        'services',
        'business_documents',
        'admin_users',
        'providers',
        'application_approvals',
        'provider_applications',
        'business_setup_progress',
        'business_profiles',
    ):
        op.drop_table(table)
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
