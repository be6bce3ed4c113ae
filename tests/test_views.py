import json
from decimal import Decimal

import pytest
from django.forms.models import model_to_dict
from django.urls import reverse

from django_shopsync.constants import Outcome, ResourceType
from django_shopsync.exceptions import StorageError
from django_shopsync.models import (
    Cart,
    Checkout,
    Collection,
    Customer,
    Order,
    Product,
    WebhookEventLog,
)
from django_shopsync.services import router
from tests.payloads import (
    SHOP_DOMAIN,
    T2,
    make_cart_payload,
    make_checkout_payload,
    make_collection_payload,
    make_customer_payload,
    make_order_payload,
    make_product_payload,
)

pytestmark = pytest.mark.django_db

PAYLOAD_BUILDERS = {
    ResourceType.ORDER: make_order_payload,
    ResourceType.PRODUCT: make_product_payload,
    ResourceType.CUSTOMER: make_customer_payload,
    ResourceType.COLLECTION: make_collection_payload,
    ResourceType.CART: make_cart_payload,
    ResourceType.CHECKOUT: make_checkout_payload,
}
SYNCED_MODELS = (Order, Product, Customer, Collection, Cart, Checkout)


def stored_rows() -> int:
    return sum(model.objects.count() for model in SYNCED_MODELS)


class TestStatusCodes:
    def test_success(self, subscription, post_webhook):
        response = post_webhook("orders", make_order_payload(), "orders/create")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["message"] == "Webhook processed"
        assert isinstance(body["processingTime"], int)

    def test_missing_topic_header(self, subscription, client):
        response = client.post(
            reverse("django_shopsync:resource_webhook", kwargs={"resource": "orders"}),
            data=json.dumps(make_order_payload()),
            content_type="application/json",
            headers={"X-Shopify-Shop-Domain": SHOP_DOMAIN},
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": "Bad request",
            "message": "Missing required headers",
        }

    def test_malformed_body(self, subscription, post_webhook):
        response = post_webhook("orders", b"not-json", "orders/create")

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid JSON"

    def test_bad_signature(self, subscription, post_webhook):
        response = post_webhook(
            "orders", make_order_payload(), "orders/create", secret="wrong_secret"
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"
        assert WebhookEventLog.objects.get().outcome == Outcome.REJECTED

    def test_unknown_shop(self, subscription, post_webhook):
        response = post_webhook(
            "orders", make_order_payload(), "orders/create", shop="elsewhere.myshopify.com"
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Unknown shop"

    def test_disabled_shop(self, subscription, post_webhook):
        subscription.enabled = False
        subscription.save()

        response = post_webhook("orders", make_order_payload(), "orders/create")

        assert response.status_code == 404
        assert not Order.objects.exists()

    def test_unknown_resource_slug(self, subscription, post_webhook):
        response = post_webhook("widgets", make_order_payload(), "orders/create")

        assert response.status_code == 404
        assert response.json()["error"] == "Not found"

    def test_get_not_allowed(self, client):
        response = client.get(
            reverse("django_shopsync:resource_webhook", kwargs={"resource": "orders"})
        )

        assert response.status_code == 405

    def test_storage_failure(self, subscription, post_webhook, mocker):
        mocker.patch(
            "django_shopsync.services.webhook_processor.UpsertReconciler.upsert",
            side_effect=StorageError("Could not store Order 9001"),
        )

        response = post_webhook("orders", make_order_payload(), "orders/create")

        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal server error",
            "message": "Could not store Order 9001",
        }
        assert WebhookEventLog.objects.get().outcome == Outcome.ERROR

    def test_forwarded_ip_is_logged(self, subscription, client):
        response = client.post(
            reverse("django_shopsync:webhook"),
            data=b"{}",
            content_type="application/json",
            headers={"X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
        )

        assert response.status_code == 400
        assert WebhookEventLog.objects.get().remote_ip == "198.51.100.4"


class TestCatchAllEndpoint:
    @pytest.mark.parametrize("resource_type", list(ResourceType))
    def test_routes_by_topic_prefix(self, subscription, post_webhook, resource_type):
        descriptor = router.get_descriptor(resource_type)
        topic = next(t for t in descriptor.topics if t.endswith("create"))

        response = post_webhook(None, PAYLOAD_BUILDERS[resource_type](), topic)

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert descriptor.model.objects.count() == 1

    def test_foreign_topic_ignored(self, subscription, post_webhook):
        response = post_webhook(None, {"id": 1}, "inventory_levels/update")

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"


class TestDeliveryProperties:
    def test_redelivery_is_idempotent(self, subscription, post_webhook):
        payload = make_product_payload()

        first = post_webhook("products", payload, "products/create")
        second = post_webhook(
            "products", payload, "products/create", delivery_id="redelivery-2"
        )

        assert first.json()["status"] == "success"
        assert second.status_code == 200
        assert second.json()["status"] == "duplicate"
        assert Product.objects.count() == 1
        assert WebhookEventLog.objects.filter(outcome=Outcome.SUCCESS).count() == 1
        assert WebhookEventLog.objects.filter(outcome=Outcome.DUPLICATE).count() == 1

    @pytest.mark.parametrize("topic", router.known_topics())
    def test_bad_signature_never_mutates(self, subscription, post_webhook, topic):
        resource_type = ResourceType.from_topic(topic)
        payload = PAYLOAD_BUILDERS[resource_type]()

        response = post_webhook(
            resource_type.topic_prefix, payload, topic, signature="AAAA"
        )

        assert response.status_code == 401
        assert stored_rows() == 0
        assert WebhookEventLog.objects.filter(outcome=Outcome.SUCCESS).count() == 0

    def test_update_replaces_fields(self, subscription, post_webhook):
        post_webhook("customers", make_customer_payload(), "customers/create")
        post_webhook(
            "customers",
            make_customer_payload(updated_at=T2, email="renamed@example.com", state="disabled"),
            "customers/update",
        )

        customer = Customer.objects.get()
        assert customer.email == "renamed@example.com"
        assert customer.state == "disabled"

    def test_delete_missing_resource_succeeds(self, subscription, post_webhook):
        response = post_webhook("collections", {"id": 424242}, "collections/delete")

        assert response.status_code == 200
        assert response.json()["status"] == "success"

    def test_delete_removes_row(self, subscription, post_webhook):
        post_webhook("checkouts", make_checkout_payload(), "checkouts/create")

        post_webhook(
            "checkouts",
            {"token": "b1946ac92492d2347c6235b4d2611184"},
            "checkouts/delete",
        )

        assert not Checkout.objects.exists()

    def test_cancel_only_touches_cancellation_fields(self, subscription, post_webhook):
        post_webhook("orders", make_order_payload(), "orders/create")
        before = model_to_dict(Order.objects.get())

        response = post_webhook(
            "orders",
            make_order_payload(
                updated_at=T2,
                cancelled_at=T2,
                cancel_reason="customer",
                email="changed@example.com",
                total_price="0.00",
            ),
            "orders/cancelled",
        )

        assert response.status_code == 200
        after = model_to_dict(Order.objects.get())
        changed = {k for k in before if before[k] != after[k]}
        assert changed <= {
            "cancelled_at",
            "cancel_reason",
            "financial_status",
            "updated_at_shopify",
            "synced_at",
        }
        assert after["cancel_reason"] == "customer"
        assert after["financial_status"] == "cancelled"
        assert after["email"] == before["email"]

    def test_out_of_range_numbers_are_stored_as_defaults(self, subscription, post_webhook):
        body = json.dumps(
            make_order_payload(total_weight="WEIGHT", total_price="1e400")
        ).replace('"WEIGHT"', "1e400")

        response = post_webhook("orders", body.encode(), "orders/create")

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        order = Order.objects.get()
        assert order.total_weight == 0
        assert order.total_price == Decimal("0.00")

    def test_unknown_topic_is_ignored(self, subscription, post_webhook):
        response = post_webhook("orders", make_order_payload(), "orders/edited")

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
        assert stored_rows() == 0
        assert WebhookEventLog.objects.count() == 1
        assert WebhookEventLog.objects.get().outcome == Outcome.IGNORED


class TestOrderScenario:
    def test_create_redeliver_update(self, subscription, post_webhook):
        created = post_webhook("orders", make_order_payload(), "orders/create")

        assert created.status_code == 200
        assert Order.objects.count() == 1
        order = Order.objects.get(shop_domain=SHOP_DOMAIN, external_id="9001")
        first_log = WebhookEventLog.objects.get(outcome=Outcome.SUCCESS)

        redelivered = post_webhook("orders", make_order_payload(), "orders/create")

        assert redelivered.json()["status"] == "duplicate"
        assert Order.objects.count() == 1
        assert WebhookEventLog.objects.filter(outcome=Outcome.DUPLICATE).count() == 1

        updated = post_webhook(
            "orders",
            make_order_payload(updated_at=T2, financial_status="paid"),
            "orders/updated",
        )

        assert updated.json()["status"] == "success"
        assert Order.objects.count() == 1
        order.refresh_from_db()
        assert order.financial_status == "paid"
        successes = WebhookEventLog.objects.filter(outcome=Outcome.SUCCESS)
        assert successes.count() == 2
        second_log = successes.exclude(pk=first_log.pk).get()
        assert second_log.fingerprint != first_log.fingerprint


class TestWebhookLogs:
    @pytest.fixture
    def log_entries(self, db):
        WebhookEventLog.objects.create(
            topic="orders/create",
            shop_domain=SHOP_DOMAIN,
            outcome=Outcome.SUCCESS,
            fingerprint="a" * 64,
        )
        WebhookEventLog.objects.create(
            topic="orders/updated",
            shop_domain=SHOP_DOMAIN,
            outcome=Outcome.ERROR,
            message="Could not store Order 9001",
        )
        WebhookEventLog.objects.create(
            topic="products/create",
            shop_domain="other.myshopify.com",
            outcome=Outcome.REJECTED,
        )

    def url(self):
        return reverse("django_shopsync:webhook_logs")

    def test_anonymous(self, client):
        response = client.get(self.url())

        assert response.status_code == 401

    def test_non_staff(self, client, django_user_model):
        user = django_user_model.objects.create_user(username="clerk", password="pw")
        client.force_login(user)

        response = client.get(self.url())

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    def test_lists_logs_with_summary(self, admin_client, log_entries):
        response = admin_client.get(self.url())

        assert response.status_code == 200
        body = response.json()
        assert len(body["logs"]) == 3
        assert body["summary"] == {"total": 3, "success": 1, "errors": 1, "today": 3}
        assert {"id", "topic", "status", "created_at"} <= set(body["logs"][0])

    def test_filters(self, admin_client, log_entries):
        by_shop = admin_client.get(self.url(), {"shop": "Other.myshopify.com"}).json()
        by_status = admin_client.get(self.url(), {"status": "error"}).json()
        by_topic = admin_client.get(self.url(), {"topic": "orders/create"}).json()

        assert [log["topic"] for log in by_shop["logs"]] == ["products/create"]
        assert by_shop["summary"]["total"] == 1
        assert [log["status"] for log in by_status["logs"]] == ["error"]
        assert [log["topic"] for log in by_topic["logs"]] == ["orders/create"]

    def test_invalid_status(self, admin_client):
        response = admin_client.get(self.url(), {"status": "bogus"})

        assert response.status_code == 400

    @pytest.mark.parametrize("limit,expected", [("1", 1), ("0", 1), ("abc", 3), ("500", 3)])
    def test_limit(self, admin_client, log_entries, limit, expected):
        response = admin_client.get(self.url(), {"limit": limit})

        assert len(response.json()["logs"]) == expected
