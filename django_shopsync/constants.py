from enum import Enum

from django.db import models
from django.utils.translation import gettext_lazy as _

HMAC_HEADER = "X-Shopify-Hmac-Sha256"
TOPIC_HEADER = "X-Shopify-Topic"
SHOP_DOMAIN_HEADER = "X-Shopify-Shop-Domain"
DELIVERY_ID_HEADER = "X-Shopify-Webhook-Id"
API_VERSION_HEADER = "X-Shopify-Api-Version"

ZERO_AMOUNT = "0.00"


class ResourceType(str, Enum):
    ORDER = "order"
    PRODUCT = "product"
    CUSTOMER = "customer"
    COLLECTION = "collection"
    CART = "cart"
    CHECKOUT = "checkout"

    @property
    def topic_prefix(self) -> str:
        return f"{self.value}s"

    @classmethod
    def from_topic(cls, topic: str) -> "ResourceType | None":
        prefix = topic.split("/", 1)[0]
        for member in cls:
            if member.topic_prefix == prefix:
                return member
        return None

    @classmethod
    def from_slug(cls, slug: str) -> "ResourceType | None":
        """Resolve the URL slug used by the per-resource endpoints ("orders")."""
        for member in cls:
            if member.topic_prefix == slug:
                return member
        return None


class Action(str, Enum):
    UPSERT = "upsert"
    STATUS_PATCH = "status_patch"
    DELETE = "delete"


class Outcome(models.TextChoices):
    SUCCESS = "success", _("Success")
    REJECTED = "rejected", _("Rejected")
    DUPLICATE = "duplicate", _("Duplicate")
    IGNORED = "ignored", _("Ignored")
    ERROR = "error", _("Error")
