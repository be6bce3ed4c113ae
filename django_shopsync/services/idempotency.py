import hashlib
import logging
from typing import Any

from django_shopsync.constants import Outcome, ResourceType
from django_shopsync.models import WebhookEventLog

logger = logging.getLogger(__name__)


def payload_version(payload: dict[str, Any]) -> str:
    """The origin's own version stamp: ``updated_at``, else ``created_at``."""
    return str(payload.get("updated_at") or payload.get("created_at") or "")


def compute_fingerprint(
    shop_domain: str,
    resource_type: ResourceType | str,
    external_id: str | None,
    version: str,
) -> str:
    """
    Derive the idempotency fingerprint of one logical state change.

    Redeliveries of the same snapshot hash identically; a new ``updated_at``
    produces a new fingerprint. The delivery id is deliberately not part of it.
    """
    tag = resource_type.value if isinstance(resource_type, ResourceType) else resource_type
    key_string = f"{shop_domain}:{tag}:{external_id or ''}:{version}"
    return hashlib.sha256(key_string.encode("utf-8")).hexdigest()


def is_duplicate(fingerprint: str) -> bool:
    """True when a delivery with this fingerprint was already applied."""
    seen = WebhookEventLog.objects.filter(
        fingerprint=fingerprint, outcome=Outcome.SUCCESS
    ).exists()
    if seen:
        logger.debug("[django-shopsync] Fingerprint already applied: %s", fingerprint)
    return seen
