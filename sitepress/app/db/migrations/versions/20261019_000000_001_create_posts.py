"""Create posts table.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column(
            "locale",
            sa.Enum("pt", "en", "es", name="post_locale"),
            nullable=False,
            server_default="pt",
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("content_html", sa.Text(), nullable=False),
        sa.Column("cover_image_url", sa.String(1024), nullable=True),
        sa.Column(
            "status",
            sa.Enum("draft", "published", name="post_status"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug", "locale", name="uq_posts_slug_locale"),
    )
    op.create_index(
        "ix_posts_locale_status_published",
        "posts",
        ["locale", "status", "published_at"],
    )
    op.create_index("ix_posts_cover_image_url", "posts", ["cover_image_url"])


def downgrade() -> None:
    op.drop_index("ix_posts_cover_image_url", table_name="posts")
    op.drop_index("ix_posts_locale_status_published", table_name="posts")
    op.drop_table("posts")
    sa.Enum(name="post_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="post_locale").drop(op.get_bind(), checkfirst=True)
