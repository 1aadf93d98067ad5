"""002 – Leave attachments: file metadata recorded against a leave request.

Only metadata is stored. The file itself lives in object storage under
``storage_key``, written by the client before the metadata is registered.

Revision ID: 002_leave_attachments
Revises: 001_leave_schema
Create Date: 2026-10-20 09:30:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "002_leave_attachments"
down_revision = "001_leave_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE leave_attachments (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_request_id  UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            file_name         VARCHAR(255) NOT NULL,
            mime_type         VARCHAR(100) NOT NULL,
            size_bytes        BIGINT NOT NULL,
            storage_key       TEXT NOT NULL,
            uploaded_by       UUID REFERENCES employees(id),
            uploaded_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_leave_attachment_size CHECK (size_bytes > 0)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_attachments_request "
        "ON leave_attachments(leave_request_id, uploaded_at DESC)"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS leave_attachments CASCADE")
