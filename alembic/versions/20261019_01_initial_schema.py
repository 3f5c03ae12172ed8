"""Initial schema: slot-bearing entity tables."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def _slot_columns(prefix: str) -> list[sa.Column]:
    return [
        sa.Column(f"{prefix}_url", sa.Text()),
        sa.Column(f"{prefix}_object_key", sa.Text()),
        sa.Column(f"{prefix}_url_old", sa.Text()),
        sa.Column(f"{prefix}_object_key_old", sa.Text()),
        sa.Column(f"{prefix}_delete_pending_until", sa.DateTime(timezone=True)),
    ]


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    ]


def _school_fk(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.String(length=64),
        sa.ForeignKey("schools.school_id", ondelete="CASCADE"),
        nullable=False,
    )


def _pending_index(table: str, prefix: str) -> None:
    column = f"{prefix}_delete_pending_until"
    op.create_index(f"ix_{table}_{column}", table, [column])


def upgrade() -> None:
    op.create_table(
        "schools",
        sa.Column("school_id", sa.String(length=64), primary_key=True),
        sa.Column("school_name", sa.String(length=100), nullable=False),
        sa.Column("school_bio_short", sa.Text()),
        sa.Column("school_city", sa.String(length=80)),
        sa.Column("school_is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        *_slot_columns("school_icon"),
        *_slot_columns("school_logo"),
        *_slot_columns("school_background"),
        *_audit_columns(),
    )
    for prefix in ("school_icon", "school_logo", "school_background"):
        _pending_index("schools", prefix)

    op.create_table(
        "school_service_plans",
        sa.Column("plan_id", sa.String(length=64), primary_key=True),
        sa.Column("plan_code", sa.String(length=30), nullable=False, unique=True),
        sa.Column("plan_name", sa.String(length=100), nullable=False),
        sa.Column("plan_description", sa.Text()),
        sa.Column("plan_price_monthly", sa.Numeric(12, 2)),
        sa.Column("plan_is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        *_slot_columns("plan_image"),
        *_audit_columns(),
    )
    _pending_index("school_service_plans", "plan_image")

    op.create_table(
        "subjects",
        sa.Column("subject_id", sa.String(length=64), primary_key=True),
        _school_fk("subject_school_id"),
        sa.Column("subject_code", sa.String(length=40), nullable=False),
        sa.Column("subject_name", sa.String(length=120), nullable=False),
        sa.Column("subject_desc", sa.Text()),
        sa.Column("subject_is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        *_slot_columns("subject_image"),
        *_audit_columns(),
    )
    op.create_index("ix_subjects_subject_school_id", "subjects", ["subject_school_id"])
    _pending_index("subjects", "subject_image")

    op.create_table(
        "posts",
        sa.Column("post_id", sa.String(length=64), primary_key=True),
        _school_fk("post_school_id"),
        sa.Column("post_title", sa.String(length=200), nullable=False),
        sa.Column("post_content", sa.Text(), nullable=False, server_default=""),
        sa.Column("post_is_published", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        *_slot_columns("post_image"),
        *_audit_columns(),
    )
    op.create_index("ix_posts_post_school_id", "posts", ["post_school_id"])
    _pending_index("posts", "post_image")

    op.create_table(
        "books",
        sa.Column("book_id", sa.String(length=64), primary_key=True),
        _school_fk("book_school_id"),
        sa.Column("book_title", sa.String(length=200), nullable=False),
        sa.Column("book_author", sa.String(length=120)),
        sa.Column("book_desc", sa.Text()),
        *_slot_columns("book_image"),
        *_audit_columns(),
    )
    op.create_index("ix_books_book_school_id", "books", ["book_school_id"])
    _pending_index("books", "book_image")


def downgrade() -> None:
    op.drop_table("books")
    op.drop_table("posts")
    op.drop_table("subjects")
    op.drop_table("school_service_plans")
    op.drop_table("schools")
