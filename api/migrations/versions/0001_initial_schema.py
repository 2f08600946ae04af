"""Initial schema: purchases, votes, trust scores, login attempts

Revision ID: 5a1f0c9e2b71
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates purchases (unique tx_hash, unique user_id+item_id), vote_aggregates,
user_votes, trust_scores and login_attempts.
Written manually (not via autogenerate) so constraint names match the
constants the repositories look for on IntegrityError.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5a1f0c9e2b71"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "purchases",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("item_id", sa.BigInteger(), nullable=False),
        sa.Column("content_id", sa.String(255), nullable=False),
        sa.Column("item_name", sa.String(200), nullable=False),
        sa.Column("item_price", sa.String(78), nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=True),
        sa.Column(
            "purchased_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("tx_hash", name="uq_purchases_tx_hash"),
        sa.UniqueConstraint("user_id", "item_id", name="uq_purchases_user_id_item_id"),
    )
    op.create_index("ix_purchases_wallet_address", "purchases", ["wallet_address"])

    op.create_table(
        "vote_aggregates",
        sa.Column("item_id", sa.BigInteger(), primary_key=True),
        sa.Column("upvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("upvotes >= 0", name="ck_vote_aggregates_upvotes_non_negative"),
        sa.CheckConstraint("downvotes >= 0", name="ck_vote_aggregates_downvotes_non_negative"),
    )

    op.create_table(
        "user_votes",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("item_id", sa.BigInteger(), nullable=False),
        sa.Column("user_email", sa.String(255), nullable=True),
        sa.Column("vote_type", sa.String(10), nullable=True),
        sa.Column("reason", sa.String(50), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "voted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "item_id", name="uq_user_votes_user_id_item_id"),
    )

    op.create_table(
        "trust_scores",
        sa.Column("item_id", sa.BigInteger(), primary_key=True),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("clean_scan", sa.Integer(), nullable=False),
        sa.Column("popular_format", sa.Integer(), nullable=False),
        sa.Column("integrity_verified", sa.Integer(), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "total_score = clean_scan + popular_format + integrity_verified",
            name="ck_trust_scores_total_is_sum",
        ),
        sa.CheckConstraint(
            "total_score >= 0 AND total_score <= 100",
            name="ck_trust_scores_total_range",
        ),
    )

    op.create_table(
        "login_attempts",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=False),
        sa.Column("successful", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "attempted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_login_attempts_email_attempted_at", "login_attempts", ["email", "attempted_at"]
    )
    op.create_index(
        "ix_login_attempts_ip_address_attempted_at",
        "login_attempts",
        ["ip_address", "attempted_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_login_attempts_ip_address_attempted_at", table_name="login_attempts")
    op.drop_index("ix_login_attempts_email_attempted_at", table_name="login_attempts")
    op.drop_table("login_attempts")
    op.drop_table("trust_scores")
    op.drop_table("user_votes")
    op.drop_table("vote_aggregates")
    op.drop_index("ix_purchases_wallet_address", table_name="purchases")
    op.drop_table("purchases")
