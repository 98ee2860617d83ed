"""create_users_and_submissions

Revision ID: 0001_users_submissions
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_users_submissions"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role_enum = sa.Enum("patient", "admin", name="user_role_enum")
submission_status_enum = sa.Enum(
    "uploaded", "annotated", "reported", name="submission_status_enum"
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("patient_id", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("patient_id"),
    )
    op.create_index(op.f("ix_users_role"), "users", ["role"])

    op.create_table(
        "submissions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("patient_name", sa.String(length=100), nullable=False),
        sa.Column("patient_code", sa.String(length=100), nullable=False),
        sa.Column("patient_email", sa.String(length=255), nullable=False),
        sa.Column("patient_note", sa.String(length=500), nullable=True),
        sa.Column("original_image_path", sa.String(length=500), nullable=False),
        sa.Column("annotated_image_path", sa.String(length=500), nullable=True),
        sa.Column("report_path", sa.String(length=500), nullable=True),
        sa.Column("annotation_data", sa.JSON(), nullable=True),
        sa.Column("review_text", sa.Text(), nullable=True),
        sa.Column(
            "status",
            submission_status_enum,
            nullable=False,
            server_default=sa.text("'uploaded'"),
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_submissions_owner_id"), "submissions", ["owner_id"])
    op.create_index(op.f("ix_submissions_status"), "submissions", ["status"])
    op.create_index(op.f("ix_submissions_created_at"), "submissions", ["created_at"])
    op.create_index(op.f("ix_submissions_patient_code"), "submissions", ["patient_code"])


def downgrade() -> None:
    op.drop_index(op.f("ix_submissions_patient_code"), table_name="submissions")
    op.drop_index(op.f("ix_submissions_created_at"), table_name="submissions")
    op.drop_index(op.f("ix_submissions_status"), table_name="submissions")
    op.drop_index(op.f("ix_submissions_owner_id"), table_name="submissions")
    op.drop_table("submissions")

    op.drop_index(op.f("ix_users_role"), table_name="users")
    op.drop_table("users")

    submission_status_enum.drop(op.get_bind(), checkfirst=True)
    user_role_enum.drop(op.get_bind(), checkfirst=True)
