"""
SQLModel database model for pending wallet sync jobs.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from .base import utcnow


class WalletJob(SQLModel, table=True):
    """A pending wallet sync job with its retry schedule."""
    __tablename__ = "wallet_push_jobs"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    type: str = Field(max_length=50, index=True)  # 'apple_push', 'google_patch', 'regenerate_pkpass'
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=5)
    next_run_at: datetime = Field(default_factory=utcnow, index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    # Lease columns, only written when dispatchers claim jobs
    locked_by: Optional[str] = Field(default=None, max_length=100)
    locked_until: Optional[datetime] = Field(default=None)

    def __repr__(self):
        return f"<WalletJob(id={self.id}, type='{self.type}', attempts={self.attempts}/{self.max_attempts})>"
