"""Initial Friends platform schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _user_pivot(name: str, target_table: str, target_col: str) -> None:
    op.create_table(
        name,
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            target_col,
            sa.Integer,
            sa.ForeignKey(f"{target_table}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def upgrade() -> None:
    """Create applications, users, profiles, memberships and the catalogue."""
    op.create_table(
        "applications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("app_key", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("username", sa.String(255), nullable=True, unique=True),
        sa.Column("barcode_id", sa.String(64), nullable=True, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("password_reset_required", sa.Boolean, server_default=sa.false()),
        sa.Column("phone", sa.String(50), server_default=""),
        sa.Column("street_addr", sa.String(255), server_default=""),
        sa.Column("city", sa.String(100), server_default=""),
        sa.Column("state", sa.String(50), server_default=""),
        sa.Column("zip", sa.String(20), server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "user_metadata",
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("first_name", sa.String(100), server_default=""),
        sa.Column("last_name", sa.String(100), server_default=""),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("email_optin", sa.Boolean, server_default=sa.false()),
        sa.Column("gender", sa.String(50), nullable=True),
        sa.Column("race", sa.String(100), nullable=True),
        sa.Column("household_income", sa.String(50), nullable=True),
        sa.Column("household_size", sa.String(10), nullable=True),
        sa.Column("education", sa.String(100), nullable=True),
        sa.Column("points", sa.Integer, server_default="0"),
        sa.Column("current_member", sa.Boolean, server_default=sa.false()),
        sa.Column("current_member_number", sa.String(64), server_default=""),
    )

    op.create_table(
        "membership_records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("member_number", sa.String(64), nullable=False, unique=True),
        sa.Column("first_name", sa.String(100), server_default=""),
        sa.Column("last_name", sa.String(100), server_default=""),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("level", sa.String(50), nullable=True),
        sa.Column("expires_on", sa.Date, nullable=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_membership_records_email", "membership_records", ["email"])

    op.create_table(
        "badges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("points", sa.Integer, server_default="0"),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("wordpress_id", sa.Integer, nullable=True),
        sa.Column("is_published", sa.Boolean, server_default=sa.true()),
    )

    op.create_table(
        "activities",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("activity_code", sa.String(50), nullable=True),
        sa.Column("points", sa.Integer, server_default="0"),
        sa.Column("wordpress_id", sa.Integer, nullable=True),
        sa.Column("is_published", sa.Boolean, server_default=sa.true()),
        sa.Column("is_archived", sa.Boolean, server_default=sa.false()),
    )
    op.create_index("ix_activities_code", "activities", ["activity_code"])

    op.create_table(
        "rewards",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("points", sa.Integer, server_default="0"),
        sa.Column("inventory", sa.Integer, nullable=True),
        sa.Column("is_published", sa.Boolean, server_default=sa.true()),
    )

    _user_pivot("user_badges", "badges", "badge_id")
    _user_pivot("user_activities", "activities", "activity_id")
    _user_pivot("user_rewards", "rewards", "reward_id")

    op.create_table(
        "bookmarks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("object_type", sa.String(20), nullable=False),
        sa.Column("object_id", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "object_type", "object_id", name="uq_bookmarks_user_object"),
    )
    op.create_index("ix_bookmarks_user_type", "bookmarks", ["user_id", "object_type"])


def downgrade() -> None:
    """Drop every platform table (reverse dependency order)."""
    op.drop_index("ix_bookmarks_user_type", table_name="bookmarks")
    op.drop_table("bookmarks")
    for name in ("user_rewards", "user_activities", "user_badges"):
        op.drop_table(name)
    op.drop_table("rewards")
    op.drop_index("ix_activities_code", table_name="activities")
    op.drop_table("activities")
    op.drop_table("badges")
    op.drop_index("ix_membership_records_email", table_name="membership_records")
    op.drop_table("membership_records")
    op.drop_table("user_metadata")
    op.drop_table("users")
    op.drop_table("applications")
