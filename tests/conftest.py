import json

import pytest
from django.urls import reverse

from django_shopsync.models import WebhookSubscription
from tests.payloads import SHOP_DOMAIN, WEBHOOK_SECRET, webhook_headers


@pytest.fixture
def subscription(db):
    return WebhookSubscription.objects.create(
        shop_domain=SHOP_DOMAIN,
        secret=WEBHOOK_SECRET,
        topics=["orders/create", "orders/updated"],
    )


@pytest.fixture
def post_webhook(client):
    """POST a payload to a webhook endpoint, signed with the test secret by default."""

    def _post(resource, payload, topic, **header_kwargs):
        if resource:
            url = reverse(
                "django_shopsync:resource_webhook", kwargs={"resource": resource}
            )
        else:
            url = reverse("django_shopsync:webhook")
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        return client.post(
            url,
            data=body,
            content_type="application/json",
            headers=webhook_headers(body, topic, **header_kwargs),
        )

    return _post
