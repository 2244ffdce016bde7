"""Initial schema with users, audio files and audio versions

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "audio_files",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("original_filename", sa.String(), nullable=False),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("original_file_size", sa.Integer(), nullable=True),
        sa.Column("file_hash", sa.String(), nullable=True),
        sa.Column("mime_type", sa.String(), nullable=False),
        sa.Column("original_format", sa.String(), nullable=False),
        sa.Column("is_converted", sa.Boolean(), nullable=False),
        sa.Column("uploaded_by", sa.String(), nullable=False),
        sa.Column("emotion", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("dataset_type", sa.String(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("sample_rate", sa.Integer(), nullable=True),
        sa.Column("channels", sa.Integer(), nullable=True),
        sa.Column("audio_level", sa.Float(), nullable=True),
        sa.Column("current_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audio_files_file_path"), "audio_files", ["file_path"])
    op.create_index(op.f("ix_audio_files_uploaded_by"), "audio_files", ["uploaded_by"])
    op.create_index(op.f("ix_audio_files_emotion"), "audio_files", ["emotion"])
    op.create_index(op.f("ix_audio_files_dataset_type"), "audio_files", ["dataset_type"])

    op.create_table(
        "audio_versions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("audio_file_id", sa.UUID(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("original_format", sa.String(), nullable=False),
        sa.Column("is_converted", sa.Boolean(), nullable=False),
        sa.Column("uploaded_by", sa.String(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("sample_rate", sa.Integer(), nullable=True),
        sa.Column("channels", sa.Integer(), nullable=True),
        sa.Column("audio_level", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["audio_file_id"], ["audio_files.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("audio_file_id", "version_number", name="uq_audio_version_number"),
    )
    op.create_index(op.f("ix_audio_versions_audio_file_id"), "audio_versions", ["audio_file_id"])


def downgrade() -> None:
    op.drop_index(op.f("ix_audio_versions_audio_file_id"), table_name="audio_versions")
    op.drop_table("audio_versions")
    op.drop_index(op.f("ix_audio_files_dataset_type"), table_name="audio_files")
    op.drop_index(op.f("ix_audio_files_emotion"), table_name="audio_files")
    op.drop_index(op.f("ix_audio_files_uploaded_by"), table_name="audio_files")
    op.drop_index(op.f("ix_audio_files_file_path"), table_name="audio_files")
    op.drop_table("audio_files")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
