from .models import (
    DeviceInfo,
    ElementInfo,
    EventRecord,
    LocationInfo,
    PageInfo,
    PerformanceMetrics,
    TransactionInfo,
    WireModel,
)
from .types import EventType, TransactionStatus, WalletType

__all__ = [
    "DeviceInfo",
    "ElementInfo",
    "EventRecord",
    "EventType",
    "LocationInfo",
    "PageInfo",
    "PerformanceMetrics",
    "TransactionInfo",
    "TransactionStatus",
    "WalletType",
    "WireModel",
]
