"""
Scratch card services.

Lifecycle state machine, history ledger and the activation verifier.
"""

from scratchcard.services.history import HistoryLedger
from scratchcard.services.lifecycle import (
    SCRATCH_DELAY_SECONDS,
    ActivationResult,
    CardLifecycle,
    ScratchHandle,
    generate_code,
)
from scratchcard.services.observable import ObservableValue
from scratchcard.services.verifier import (
    ACTIVATION_THRESHOLD,
    ActivationVerifier,
    HttpActivationVerifier,
    check_activation_threshold,
    parse_version_value,
)

__all__ = [
    "ACTIVATION_THRESHOLD",
    "SCRATCH_DELAY_SECONDS",
    "ActivationResult",
    "ActivationVerifier",
    "CardLifecycle",
    "HistoryLedger",
    "HttpActivationVerifier",
    "ObservableValue",
    "ScratchHandle",
    "check_activation_threshold",
    "generate_code",
    "parse_version_value",
]
