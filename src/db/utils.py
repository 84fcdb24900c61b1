"""
Database utility functions shared by the stores.
"""
from __future__ import annotations

import uuid
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention for all timestamps)."""
    return datetime.now(UTC).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())
