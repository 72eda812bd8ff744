"""
Pydantic schemas for wallet job payloads and dispatcher responses.
"""
import math
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

JOB_TYPE_APPLE_PUSH = "apple_push"
JOB_TYPE_GOOGLE_PATCH = "google_patch"
JOB_TYPE_REGENERATE_PKPASS = "regenerate_pkpass"

JOB_TYPES = (JOB_TYPE_APPLE_PUSH, JOB_TYPE_GOOGLE_PATCH, JOB_TYPE_REGENERATE_PKPASS)


class _JobPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the JSON stored in the job row (type lives in its own column)."""
        return self.model_dump(by_alias=True, exclude={"type"}, exclude_none=True)


class GooglePatchPayload(_JobPayload):
    """Patch the points balance of a Google Wallet object."""
    type: Literal["google_patch"] = JOB_TYPE_GOOGLE_PATCH
    object_id: str = Field(..., alias="objectId", min_length=1)
    balance: Optional[Union[int, float, str]] = Field(0, description="New points balance")

    @field_validator("balance")
    @classmethod
    def balance_must_be_numeric(cls, value):
        if value is None:
            return value
        try:
            number = float(value)
        except ValueError as e:
            raise ValueError(f"balance must be numeric, got {value!r}") from e
        if not math.isfinite(number):
            raise ValueError(f"balance must be finite, got {value!r}")
        return value


class RegeneratePassPayload(_JobPayload):
    """Rebuild an Apple Wallet bundle and optionally wake the device."""
    type: Literal["regenerate_pkpass"] = JOB_TYPE_REGENERATE_PKPASS
    pass_id: str = Field(..., alias="passId", min_length=1)
    device_token: Optional[str] = Field(None, alias="deviceToken")
    registration_id: Optional[str] = Field(None, alias="registrationId")


class ApplePushPayload(_JobPayload):
    """Send a silent update push for an already regenerated pass."""
    type: Literal["apple_push"] = JOB_TYPE_APPLE_PUSH
    serial_number: str = Field(..., alias="serialNumber", min_length=1)
    device_token: str = Field(..., alias="deviceToken", min_length=1)


WalletJobPayload = Annotated[
    Union[GooglePatchPayload, RegeneratePassPayload, ApplePushPayload],
    Field(discriminator="type"),
]

_payload_adapter = TypeAdapter(WalletJobPayload)


def parse_job_payload(job_type: str, payload: Optional[Dict[str, Any]]) -> Optional[WalletJobPayload]:
    """
    Parse a stored job row into its typed payload.

    Returns:
        The payload model, or None for unknown job types and malformed payloads
    """
    if job_type not in JOB_TYPES:
        return None
    try:
        return _payload_adapter.validate_python({**(payload or {}), "type": job_type})
    except ValidationError:
        return None


class EnqueueJobRequest(BaseModel):
    """Schema for an explicit enqueue request."""
    type: str = Field(..., description="One of apple_push, google_patch, regenerate_pkpass")
    payload: Dict[str, Any] = Field(default_factory=dict)
    max_attempts: Optional[int] = Field(None, ge=1)


class WalletJobResponse(BaseModel):
    """Schema for a stored wallet job."""
    id: str
    type: str
    payload: Dict[str, Any]
    attempts: int
    max_attempts: int
    next_run_at: datetime
    created_at: datetime


class DispatchSummary(BaseModel):
    """Outcome of one dispatcher batch."""
    processed: int = 0
    failed: int = 0
    dropped: int = 0
    total: int = 0
