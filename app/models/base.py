"""Shared metadata for all tables."""

from sqlalchemy import MetaData

# Single metadata so foreign keys between tables resolve
metadata = MetaData()
