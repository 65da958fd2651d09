"""
Transfer testing gate.
"""
from skillengine.transfer.transfer_gate import (
    TransferGate,
    TransferGateConfig,
    TransferStatus,
    TransferTest,
    TransferTestResult,
    TransferType,
)

__all__ = [
    "TransferGate",
    "TransferGateConfig",
    "TransferStatus",
    "TransferTest",
    "TransferTestResult",
    "TransferType",
]
