"""
Pydantic schemas for wallet synchronization results and request/response models.
"""
from enum import Enum
from typing import Optional, Dict, Any, List, Literal
from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Failure classes reported by the synchronizers."""
    CLASS_VERIFICATION_FAILED = "CLASS_VERIFICATION_FAILED"
    CLASS_CREATION_FAILED = "CLASS_CREATION_FAILED"
    CLASS_NOT_APPROVED = "CLASS_NOT_APPROVED"
    OBJECT_CREATION_FAILED = "OBJECT_CREATION_FAILED"
    OBJECT_NOT_FOUND = "OBJECT_NOT_FOUND"
    PATCH_FAILED = "PATCH_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    SIGNING_FAILED = "SIGNING_FAILED"
    PUSH_FAILED = "PUSH_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"


class WorkflowStep(str, Enum):
    """Stage of a synchronous pass workflow a failure is attributed to."""
    VALIDATION = "validation"
    CLASS_CREATION = "class_creation"
    OBJECT_CREATION = "object_creation"
    SAVE_LINK = "save_link"
    SIGNING = "signing"


class ClassStatus(str, Enum):
    """Terminal states of the class get-or-create flow."""
    EXISTS = "EXISTS"
    CREATED = "CREATED"
    FAILED = "FAILED"


class ClassResult(BaseModel):
    """Result of resolving a Google Wallet class."""
    success: bool
    class_id: str
    status: ClassStatus
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None


class ObjectResult(BaseModel):
    """Result of inserting a Google Wallet object."""
    success: bool
    object_id: str
    response: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None


class PatchResult(BaseModel):
    """Result of patching an existing Google Wallet object."""
    success: bool
    result: Optional[Dict[str, Any]] = None
    endpoint: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None


class SaveLink(BaseModel):
    """Signed save-to-wallet token and the URL that carries it."""
    token: str
    save_url: str


class QRCodeResult(BaseModel):
    """Rendered QR image URLs for a save or selection link."""
    primary: str
    fallback: str
    recommended: str
    short_url: str
    original_url: str
    shortened: bool = False


class PassCreationResult(BaseModel):
    """Outcome of the Google Wallet pass creation workflow."""
    success: bool
    step: Optional[WorkflowStep] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None
    validation_errors: List[str] = Field(default_factory=list)
    class_id: Optional[str] = None
    object_id: Optional[str] = None
    class_status: Optional[ClassStatus] = None
    save_url: Optional[str] = None
    qr_codes: Optional[QRCodeResult] = None
    class_payload: Optional[Dict[str, Any]] = None
    object_payload: Optional[Dict[str, Any]] = None

    @property
    def workflow(self) -> Dict[str, Any]:
        return {
            "step1_class": {"id": self.class_id, "status": self.class_status.value.lower() if self.class_status else None},
            "step2_object": {"id": self.object_id, "status": "created" if self.object_id and self.success else None},
            "step3_jwt": {"generated": bool(self.save_url)},
            "step4_qr": {
                "url": self.qr_codes.recommended if self.qr_codes else None,
                "fallbackUrl": self.qr_codes.fallback if self.qr_codes else None,
                "shortUrl": self.qr_codes.short_url if self.qr_codes else None,
            },
        }


class SignedBundle(BaseModel):
    """A signed Apple Wallet bundle, kept in memory."""
    serial_number: str
    data: bytes
    files: Dict[str, bytes] = Field(default_factory=dict)
    media_type: str = "application/vnd.apple.pkpass"


class RegenerationResult(BaseModel):
    """Outcome of regenerating an Apple Wallet bundle for a pass."""
    success: bool
    serial_number: Optional[str] = None
    bundle: Optional[SignedBundle] = None
    public_url: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None
    step: Optional[WorkflowStep] = None


class PushResult(BaseModel):
    """Outcome of one APNs wake-up push."""
    success: bool
    status_code: Optional[int] = None
    apns_id: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None


class GoogleWalletPassCreate(BaseModel):
    """Schema for creating a Google Wallet pass."""
    holder: str = Field(..., description="Holder identity, usually an email address")
    pass_type: str = Field(..., description="One of 'loyalty', 'gift-card', 'offer', 'generic'")
    pass_data: Dict[str, Any] = Field(..., description="Semantic pass data (title, brandColor, logo, ...)")
    smart_tap_config: Optional[Dict[str, Any]] = Field(None, description="merchantIds and redemptionValue")


class DeviceRegistrationRequest(BaseModel):
    """Body Apple Wallet posts when a device registers for updates."""
    pushToken: Optional[str] = None
    deviceToken: Optional[str] = None


class PassRegisterRequest(BaseModel):
    """Links a pass to a customer program once the holder adds it to a wallet."""
    customer_program_id: str = Field(..., min_length=1)
    wallet_type: Literal["google", "apple"]
    google_object_id: Optional[str] = None
    device_token: Optional[str] = None


class PassRegistrationResponse(BaseModel):
    """Schema for a stored pass registration."""
    id: str
    pass_id: Optional[str] = None
    customer_program_id: Optional[str] = None
    wallet_type: str
    google_object_id: Optional[str] = None
    apple_serial_number: Optional[str] = None
    device_library_id: Optional[str] = None
