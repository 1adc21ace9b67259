"""
friends.database.legacy — WordPress Source Tables
==================================================

Core ``Table`` definitions for the two tables the importer reads from the
legacy WordPress database.  They live on their own :class:`MetaData` so
``init_db`` and Alembic never try to create them in the Friends schema.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, MetaData, String, Table, Text

legacy_metadata = MetaData()

wp_users = Table(
    "wp_users",
    legacy_metadata,
    Column("ID", BigInteger, primary_key=True),
    Column("user_login", String(60), nullable=False, default=""),
    Column("user_pass", String(255), nullable=False, default=""),
    Column("user_nicename", String(50), nullable=False, default=""),
    Column("user_email", String(100), nullable=False, default=""),
    Column("user_registered", DateTime, nullable=True),
    Column("display_name", String(250), nullable=False, default=""),
)

wp_usermeta = Table(
    "wp_usermeta",
    legacy_metadata,
    Column("umeta_id", BigInteger, primary_key=True),
    Column("user_id", BigInteger, nullable=False, index=True),
    Column("meta_key", String(255), nullable=True),
    Column("meta_value", Text, nullable=True),
)
