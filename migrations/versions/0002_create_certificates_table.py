"""create certificates and event counters

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "event_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("current_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", name="uq_event_counters_event_id"),
    )
    op.create_table(
        "certificates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("certificate_number", sa.String(64), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("participant_name", sa.String(255), nullable=False),
        sa.Column("event_title", sa.String(255), nullable=True),
        sa.Column("completion_date", sa.Date(), nullable=True),
        sa.Column("pdf_url", sa.String(512), nullable=True),
        sa.Column("png_url", sa.String(512), nullable=True),
        sa.Column("issued_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("certificate_number", name="uq_certificates_certificate_number"),
        sa.UniqueConstraint(
            "event_id",
            "participant_name",
            name="uix_certificate_event_participant",
        ),
    )
    op.create_index("ix_certificates_event_id", "certificates", ["event_id"])
    op.create_index("ix_certificates_user_id", "certificates", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_certificates_user_id", table_name="certificates")
    op.drop_index("ix_certificates_event_id", table_name="certificates")
    op.drop_table("certificates")
    op.drop_table("event_counters")
