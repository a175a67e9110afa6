"""SQLAlchemy metadata definitions for Fluffy tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()

users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column("email", sa.Text(), nullable=False),
    sa.Column("password_hash", sa.Text(), nullable=False),
    sa.Column("first_name", sa.Text(), nullable=False),
    sa.Column("last_name", sa.Text(), nullable=False),
    sa.Column(
        "authentication_mode",
        sa.String(50),
        nullable=False,
        server_default=sa.text("'integrated'"),
    ),
    sa.Column("external_authentication_identifier", sa.Text(), nullable=True),
    sa.Column(
        "registered_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("refresh_token", sa.Text(), nullable=True),
    sa.Column("refresh_token_expires_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.UniqueConstraint("email", name="uq_users_email"),
    sa.CheckConstraint(
        "authentication_mode IN ('integrated', 'external')",
        name="ck_users_authentication_mode",
    ),
    sa.CheckConstraint(
        "(refresh_token IS NULL) = (refresh_token_expires_at IS NULL)",
        name="ck_users_refresh_token_pair",
    ),
)
