"""
Topic routing.

Every resource type is described once by a ``ResourceDescriptor``: its model,
normalizer, identity key(s) and the table mapping each topic it understands
to a lifecycle action. The table is checked for completeness when the app
loads, so an unrecognized topic is always a deliberate "ignored" outcome.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from django.core.exceptions import ImproperlyConfigured
from django.db import models as db_models

from django_shopsync import models
from django_shopsync.constants import Action, ResourceType
from django_shopsync.exceptions import UnsupportedTopic
from django_shopsync.services import normalizers
from django_shopsync.utils import parse_timestamp

Normalizer = Callable[[dict[str, Any], str, datetime | None], dict[str, Any]]
PatchBuilder = Callable[[dict[str, Any], datetime], dict[str, Any]]


@dataclass(frozen=True)
class ResourceDescriptor:
    resource_type: ResourceType
    model: type[db_models.Model]
    normalizer: Normalizer
    identity_keys: tuple[str, ...]
    topics: dict[str, Action]
    patches: dict[str, PatchBuilder] = field(default_factory=dict)

    def external_id(self, payload: dict[str, Any]) -> str | None:
        """Identity of the resource in ``payload``, or None if absent."""
        for key in self.identity_keys:
            value = payload.get(key)
            if value not in (None, ""):
                return str(value)
        return None

    def require_external_id(self, payload: dict[str, Any]) -> str:
        return normalizers.require_identity(payload, *self.identity_keys)


@dataclass(frozen=True)
class Route:
    descriptor: ResourceDescriptor
    topic: str
    action: Action

    @property
    def resource_type(self) -> ResourceType:
        return self.descriptor.resource_type

    @property
    def model(self) -> type[db_models.Model]:
        return self.descriptor.model

    def build_patch(self, payload: dict[str, Any], now: datetime) -> dict[str, Any]:
        return self.descriptor.patches[self.topic](payload, now)


def _lifecycle_stamp(payload: dict[str, Any], now: datetime) -> dict[str, Any]:
    return {
        "updated_at_shopify": parse_timestamp(payload.get("updated_at")),
        "synced_at": now,
    }


def _patch_order_cancelled(payload: dict[str, Any], now: datetime) -> dict[str, Any]:
    return {
        "cancelled_at": parse_timestamp(payload.get("cancelled_at")) or now,
        "cancel_reason": payload.get("cancel_reason") or "",
        "financial_status": "cancelled",
        **_lifecycle_stamp(payload, now),
    }


def _patch_order_paid(payload: dict[str, Any], now: datetime) -> dict[str, Any]:
    patch = {
        "financial_status": payload.get("financial_status") or "paid",
        **_lifecycle_stamp(payload, now),
    }
    processed_at = parse_timestamp(payload.get("processed_at"))
    if processed_at:
        patch["processed_at"] = processed_at
    return patch


def _patch_order_fulfilled(payload: dict[str, Any], now: datetime) -> dict[str, Any]:
    return {
        "fulfillment_status": payload.get("fulfillment_status") or "fulfilled",
        "fulfillments": normalizers.normalize_fulfillments(payload.get("fulfillments")),
        **_lifecycle_stamp(payload, now),
    }


DESCRIPTORS: dict[ResourceType, ResourceDescriptor] = {
    ResourceType.ORDER: ResourceDescriptor(
        resource_type=ResourceType.ORDER,
        model=models.Order,
        normalizer=normalizers.normalize_order,
        identity_keys=("id",),
        topics={
            "orders/create": Action.UPSERT,
            "orders/updated": Action.UPSERT,
            "orders/cancelled": Action.STATUS_PATCH,
            "orders/fulfilled": Action.STATUS_PATCH,
            "orders/paid": Action.STATUS_PATCH,
            "orders/delete": Action.DELETE,
        },
        patches={
            "orders/cancelled": _patch_order_cancelled,
            "orders/fulfilled": _patch_order_fulfilled,
            "orders/paid": _patch_order_paid,
        },
    ),
    ResourceType.PRODUCT: ResourceDescriptor(
        resource_type=ResourceType.PRODUCT,
        model=models.Product,
        normalizer=normalizers.normalize_product,
        identity_keys=("id",),
        topics={
            "products/create": Action.UPSERT,
            "products/update": Action.UPSERT,
            "products/delete": Action.DELETE,
        },
    ),
    ResourceType.CUSTOMER: ResourceDescriptor(
        resource_type=ResourceType.CUSTOMER,
        model=models.Customer,
        normalizer=normalizers.normalize_customer,
        identity_keys=("id",),
        topics={
            "customers/create": Action.UPSERT,
            "customers/update": Action.UPSERT,
            "customers/enable": Action.UPSERT,
            "customers/disable": Action.UPSERT,
            "customers/delete": Action.DELETE,
        },
    ),
    ResourceType.COLLECTION: ResourceDescriptor(
        resource_type=ResourceType.COLLECTION,
        model=models.Collection,
        normalizer=normalizers.normalize_collection,
        identity_keys=("id",),
        topics={
            "collections/create": Action.UPSERT,
            "collections/update": Action.UPSERT,
            "collections/delete": Action.DELETE,
        },
    ),
    ResourceType.CART: ResourceDescriptor(
        resource_type=ResourceType.CART,
        model=models.Cart,
        normalizer=normalizers.normalize_cart,
        identity_keys=("token", "id"),
        topics={
            "carts/create": Action.UPSERT,
            "carts/update": Action.UPSERT,
        },
    ),
    ResourceType.CHECKOUT: ResourceDescriptor(
        resource_type=ResourceType.CHECKOUT,
        model=models.Checkout,
        normalizer=normalizers.normalize_checkout,
        identity_keys=("token",),
        topics={
            "checkouts/create": Action.UPSERT,
            "checkouts/update": Action.UPSERT,
            "checkouts/delete": Action.DELETE,
        },
    ),
}


def get_descriptor(resource_type: ResourceType) -> ResourceDescriptor:
    return DESCRIPTORS[resource_type]


def resolve(resource_type: ResourceType, topic: str) -> Route:
    """
    Route a topic received on a resource-specific endpoint.

    Raises:
        UnsupportedTopic: the resource type has no action for ``topic``
    """
    descriptor = DESCRIPTORS[resource_type]
    action = descriptor.topics.get(topic)
    if action is None:
        raise UnsupportedTopic(f"Unhandled topic: {topic}")
    return Route(descriptor=descriptor, topic=topic, action=action)


def resolve_any(topic: str) -> Route:
    """Route a topic received on the catch-all endpoint by its prefix."""
    resource_type = ResourceType.from_topic(topic)
    if resource_type is None:
        raise UnsupportedTopic(f"Unhandled topic: {topic}")
    return resolve(resource_type, topic)


def known_topics() -> list[str]:
    return [topic for d in DESCRIPTORS.values() for topic in d.topics]


def check_registry(descriptors: dict[ResourceType, ResourceDescriptor] | None = None):
    """
    Validate the routing table.

    Raises:
        ImproperlyConfigured: a resource type is unrouted, a topic is filed
            under the wrong resource, or a status-patch topic has no builder
    """
    descriptors = DESCRIPTORS if descriptors is None else descriptors
    errors = []

    for resource_type in ResourceType:
        descriptor = descriptors.get(resource_type)
        if descriptor is None:
            errors.append(f"no descriptor for resource type '{resource_type.value}'")
            continue
        if descriptor.resource_type is not resource_type:
            errors.append(f"descriptor for '{resource_type.value}' is mislabelled")
        if not descriptor.identity_keys:
            errors.append(f"'{resource_type.value}' has no identity key")
        for topic, action in descriptor.topics.items():
            if ResourceType.from_topic(topic) is not resource_type:
                errors.append(f"topic '{topic}' filed under '{resource_type.value}'")
            if action is Action.STATUS_PATCH and topic not in descriptor.patches:
                errors.append(f"status-patch topic '{topic}' has no patch builder")
        for topic in descriptor.patches:
            if descriptor.topics.get(topic) is not Action.STATUS_PATCH:
                errors.append(f"patch builder for '{topic}' is not a status-patch topic")

    if errors:
        raise ImproperlyConfigured("Invalid webhook routing table: " + "; ".join(errors))

