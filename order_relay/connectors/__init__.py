"""HTTP connectors for the commerce source and the downstream target."""

from .commerce import CommerceAuthError, CommerceConnector, CommerceError
from .target import DeliveryStatus, ForwardResult, TargetForwarder

__all__ = [
    "CommerceAuthError",
    "CommerceConnector",
    "CommerceError",
    "DeliveryStatus",
    "ForwardResult",
    "TargetForwarder",
]
