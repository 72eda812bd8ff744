from .base import BaseModel
from .jobs import WalletJob
from .passes import PassRecord, PassRegistration

__all__ = ["BaseModel", "WalletJob", "PassRecord", "PassRegistration"]
