from .event_logger import EventLogger
from .reconciler import UpsertReconciler
from .webhook_processor import Delivery, ProcessingResult, WebhookProcessor

__all__ = [
    "Delivery",
    "EventLogger",
    "ProcessingResult",
    "UpsertReconciler",
    "WebhookProcessor",
]
