"""
SQLModel database models for wallet passes and their device registrations.
"""
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field

from .base import BaseModel


class PassRecord(BaseModel, table=True):
    """A pass issued to a holder; the core reads it and writes back URLs."""
    __tablename__ = "passes"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_email: Optional[str] = Field(default=None, index=True, max_length=255)
    pass_type: str = Field(max_length=50)  # 'loyalty', 'gift-card', 'offer', 'generic'
    title: str = Field(default="Untitled Pass", max_length=255)
    pass_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    class_id: Optional[str] = Field(default=None, max_length=255)
    object_id: Optional[str] = Field(default=None, index=True, max_length=255)
    qr_code_url: Optional[str] = Field(default=None)
    pass_url: Optional[str] = Field(default=None)
    apple_pass_url: Optional[str] = Field(default=None)
    status: str = Field(default="active", max_length=50)

    @property
    def serial_number(self) -> str:
        """Stable serial reused across every regeneration of this pass."""
        return self.object_id or (self.pass_data or {}).get("serialNumber") or self.id

    def __repr__(self):
        return f"<PassRecord(id={self.id}, type='{self.pass_type}', object='{self.object_id}')>"


class PassRegistration(BaseModel, table=True):
    """Links a pass to a customer program and a wallet on a device."""
    __tablename__ = "pass_registrations"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    pass_id: Optional[str] = Field(default=None, index=True, max_length=255)
    customer_program_id: Optional[str] = Field(default=None, index=True, max_length=255)
    wallet_type: str = Field(max_length=20)  # 'google' or 'apple'
    google_object_id: Optional[str] = Field(default=None, max_length=255)
    apple_serial_number: Optional[str] = Field(default=None, index=True, max_length=255)
    apple_device_token: Optional[str] = Field(default=None, max_length=255)
    device_library_id: Optional[str] = Field(default=None, index=True, max_length=255)

    def __repr__(self):
        return f"<PassRegistration(id={self.id}, wallet='{self.wallet_type}', pass='{self.pass_id}')>"
