"""create applications, application_documents and audit_logs

Revision ID: 001_create_applications
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001_create_applications"
down_revision = None
branch_labels = None
depends_on = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "applications",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("application_id", sa.String(length=32), nullable=False),
        sa.Column("beneficiary_id", sa.Uuid(), nullable=False),
        sa.Column("application_type", sa.String(length=30), nullable=False),
        sa.Column("application_status", sa.String(length=30), server_default=sa.text("'DRAFT'"), nullable=False),
        sa.Column("assigned_officer", sa.Uuid(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("application_reason", sa.Text(), nullable=True),
        sa.Column("scheme_details", JSON_TYPE, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("application_id", name="uq_applications_application_id"),
    )
    # Officer queues: WHERE status IN (...) ORDER BY submitted_at
    op.create_index("idx_applications_status_submitted", "applications", ["application_status", "submitted_at"])
    op.create_index("idx_applications_officer_status", "applications", ["assigned_officer", "application_status"])
    # Beneficiary dashboard: WHERE beneficiary_id = ? ORDER BY created_at DESC
    op.create_index("idx_applications_beneficiary_created", "applications", ["beneficiary_id", "created_at"])
    # stats(): GROUP BY type, status
    op.create_index("idx_applications_type_status", "applications", ["application_type", "application_status"])

    op.create_table(
        "application_documents",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "application_pk",
            sa.Uuid(),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(length=100), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("verification_status", sa.String(length=20), server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("verified_by", sa.Uuid(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("application_pk", "position", name="uq_application_documents_position"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("performed_by", sa.Uuid(), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("old_value", JSON_TYPE, nullable=True),
        sa.Column("new_value", JSON_TYPE, nullable=True),
        sa.Column("change_summary", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("idx_audit_logs_entity", "audit_logs", ["entity_type", "entity_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_table("application_documents")

    op.drop_index("idx_applications_type_status", table_name="applications")
    op.drop_index("idx_applications_beneficiary_created", table_name="applications")
    op.drop_index("idx_applications_officer_status", table_name="applications")
    op.drop_index("idx_applications_status_submitted", table_name="applications")
    op.drop_table("applications")
