"""files and downloaded_files

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "files",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False),
        sa.Column("uploaded_by", sa.BigInteger(), nullable=False),
        sa.Column("hash", sa.String(length=128), nullable=False),
        sa.Column("blob_ref", sa.String(length=255), nullable=False),
        sa.Column("expired_at", sa.DateTime(), nullable=True),
        sa.Column("locked", sa.Boolean(), nullable=False),
        sa.Column("tags", sa.Text(), nullable=False),
        sa.Column("note_id", sa.String(length=36), nullable=True),
    )
    op.create_index("ix_files_uploaded_by", "files", ["uploaded_by"])
    op.create_index("ix_files_hash", "files", ["hash"])
    op.create_index("ix_files_expired_at", "files", ["expired_at"])

    op.create_table(
        "downloaded_files",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("file_id", sa.Integer(), nullable=False),
        sa.Column("downloaded_at", sa.DateTime(), nullable=False),
        sa.Column("downloaded_by", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_downloaded_files_file_id", "downloaded_files", ["file_id"])
    op.create_index("ix_downloaded_files_downloaded_by", "downloaded_files", ["downloaded_by"])


def downgrade() -> None:
    op.drop_index("ix_downloaded_files_downloaded_by", table_name="downloaded_files")
    op.drop_index("ix_downloaded_files_file_id", table_name="downloaded_files")
    op.drop_table("downloaded_files")
    op.drop_index("ix_files_expired_at", table_name="files")
    op.drop_index("ix_files_hash", table_name="files")
    op.drop_index("ix_files_uploaded_by", table_name="files")
    op.drop_table("files")
