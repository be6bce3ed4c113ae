import json
import uuid

import httpx
from django.core.management.base import BaseCommand, CommandError

from django_shopsync.conf import settings
from django_shopsync.constants import (
    API_VERSION_HEADER,
    DELIVERY_ID_HEADER,
    HMAC_HEADER,
    SHOP_DOMAIN_HEADER,
    TOPIC_HEADER,
    ResourceType,
)
from django_shopsync.models import WebhookSubscription
from django_shopsync.samples import sample_payload
from django_shopsync.services import router
from django_shopsync.services.verification import compute_signature
from django_shopsync.utils import normalize_shop_domain

DEFAULT_SHOP = "test-store.myshopify.com"
DEFAULT_TOPIC = "products/create"
API_VERSION = "2024-01"


class Command(BaseCommand):
    help = "Send a signed sample webhook delivery to a webhook endpoint"

    def add_arguments(self, parser):
        parser.add_argument(
            "--url",
            help="Endpoint URL (defaults to DJANGO_SHOPSYNC_WEBHOOK_URL plus the resource path)",
        )
        parser.add_argument(
            "--secret",
            help="Signing secret (defaults to the shop's subscription secret)",
        )
        parser.add_argument("--topic", default=DEFAULT_TOPIC)
        parser.add_argument("--shop", default=DEFAULT_SHOP)

    def handle(self, *args, **options):
        topic = options["topic"]
        shop = normalize_shop_domain(options["shop"])

        if topic not in router.known_topics():
            raise CommandError(f"Unknown topic: {topic}")
        resource_type = ResourceType.from_topic(topic)

        url = options.get("url") or self._default_url(resource_type)
        secret = options.get("secret") or self._default_secret(shop)

        body = json.dumps(sample_payload(resource_type)).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            TOPIC_HEADER: topic,
            SHOP_DOMAIN_HEADER: shop,
            DELIVERY_ID_HEADER: str(uuid.uuid4()),
            API_VERSION_HEADER: API_VERSION,
        }
        if secret:
            headers[HMAC_HEADER] = compute_signature(secret, body)
        else:
            self.stdout.write(self.style.WARNING("No secret: sending unsigned"))

        self.stdout.write(f"POST {url} ({topic}, {shop})")

        try:
            response = httpx.post(url, content=body, headers=headers, timeout=30)
        except httpx.RequestError as e:
            raise CommandError(f"Failed: {e}") from e

        style = self.style.SUCCESS if response.is_success else self.style.ERROR
        self.stdout.write(style(f"Status: {response.status_code}"))
        self.stdout.write(response.text)

    @staticmethod
    def _default_url(resource_type: ResourceType) -> str:
        base = settings.WEBHOOK_URL
        if not base:
            raise CommandError("Pass --url or set DJANGO_SHOPSYNC_WEBHOOK_URL")
        return f"{base.rstrip('/')}/{resource_type.topic_prefix}/"

    @staticmethod
    def _default_secret(shop: str) -> str | None:
        subscription = WebhookSubscription.objects.filter(shop_domain=shop).first()
        if subscription is not None:
            return subscription.get_secret()
        return settings.WEBHOOK_SECRET
