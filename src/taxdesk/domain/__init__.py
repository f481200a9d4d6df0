"""Domain layer - core business logic."""

from .models import (
    ActivitySignals,
    BatchPostResult,
    BusinessProfile,
    CurrentPeriodStatus,
    Obligation,
    PostableDocument,
    SetupState,
)

__all__ = [
    "ActivitySignals",
    "BatchPostResult",
    "BusinessProfile",
    "CurrentPeriodStatus",
    "Obligation",
    "PostableDocument",
    "SetupState",
]
