import json
from io import StringIO

import httpx
import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from django_shopsync.constants import Outcome
from django_shopsync.exceptions import StorageError
from django_shopsync.models import Order, WebhookEventLog, WebhookSubscription
from django_shopsync.services.verification import verify_signature
from tests.payloads import SHOP_DOMAIN, WEBHOOK_SECRET, make_order_payload

pytestmark = pytest.mark.django_db

SEND_COMMAND = "django_shopsync.management.commands.shopsync_send_test_webhook"


class TestSendTestWebhookCommand:
    @pytest.fixture
    def mock_post(self, mocker):
        return mocker.patch(
            f"{SEND_COMMAND}.httpx.post",
            return_value=mocker.Mock(
                status_code=200,
                is_success=True,
                text='{"status": "success"}',
            ),
        )

    def test_signs_with_subscription_secret(self, subscription, mock_post):
        out = StringIO()
        call_command("shopsync_send_test_webhook", stdout=out)

        url = mock_post.call_args.args[0]
        body = mock_post.call_args.kwargs["content"]
        headers = mock_post.call_args.kwargs["headers"]
        assert url == "http://testserver/shopsync/webhooks/products/"
        assert headers["X-Shopify-Topic"] == "products/create"
        assert headers["X-Shopify-Shop-Domain"] == SHOP_DOMAIN
        assert verify_signature(body, headers["X-Shopify-Hmac-Sha256"], WEBHOOK_SECRET)
        assert json.loads(body)["title"].startswith("Test Product")
        assert "Status: 200" in out.getvalue()

    def test_explicit_options(self, db, mock_post):
        out = StringIO()
        call_command(
            "shopsync_send_test_webhook",
            url="https://shop.example.com/hooks/",
            secret="cli_secret",
            topic="orders/create",
            shop="demo.myshopify.com",
            stdout=out,
        )

        assert mock_post.call_args.args[0] == "https://shop.example.com/hooks/"
        body = mock_post.call_args.kwargs["content"]
        headers = mock_post.call_args.kwargs["headers"]
        assert verify_signature(body, headers["X-Shopify-Hmac-Sha256"], "cli_secret")
        assert "line_items" in json.loads(body)

    def test_unsigned_without_secret(self, db, mock_post):
        out = StringIO()
        call_command("shopsync_send_test_webhook", stdout=out)

        assert "X-Shopify-Hmac-Sha256" not in mock_post.call_args.kwargs["headers"]
        assert "No secret: sending unsigned" in out.getvalue()

    def test_unknown_topic(self, db):
        with pytest.raises(CommandError) as exc_info:
            call_command("shopsync_send_test_webhook", topic="widgets/create")

        assert "Unknown topic: widgets/create" in str(exc_info.value)

    def test_requires_url(self, db, settings):
        settings.DJANGO_SHOPSYNC_WEBHOOK_URL = None

        with pytest.raises(CommandError) as exc_info:
            call_command("shopsync_send_test_webhook")

        assert "Pass --url or set DJANGO_SHOPSYNC_WEBHOOK_URL" in str(exc_info.value)

    def test_connection_error(self, db, mocker):
        mocker.patch(
            f"{SEND_COMMAND}.httpx.post",
            side_effect=httpx.ConnectError("Connection refused"),
        )

        with pytest.raises(CommandError) as exc_info:
            call_command("shopsync_send_test_webhook")

        assert "Failed" in str(exc_info.value)
        assert "Connection refused" in str(exc_info.value)


class TestReplayCommand:
    def make_entry(self, outcome=Outcome.ERROR, **kwargs) -> WebhookEventLog:
        fields = {
            "topic": "orders/create",
            "shop_domain": SHOP_DOMAIN,
            "resource_type": "order",
            "outcome": outcome,
            "raw_payload": json.dumps(make_order_payload()),
            "authenticated": True,
        }
        fields.update(kwargs)
        return WebhookEventLog.objects.create(**fields)

    def test_replays_error_entries(self, subscription):
        entry = self.make_entry()

        out = StringIO()
        call_command("shopsync_replay", stdout=out)

        assert Order.objects.filter(external_id="9001").exists()
        replay = WebhookEventLog.objects.get(replayed_from=entry)
        assert replay.outcome == Outcome.SUCCESS
        assert "Replayed: 1, skipped: 0, errors: 0" in out.getvalue()

    def test_dry_run(self, subscription):
        self.make_entry()

        out = StringIO()
        call_command("shopsync_replay", dry_run=True, stdout=out)

        assert "DRY RUN" in out.getvalue()
        assert "replayable" in out.getvalue()
        assert not Order.objects.exists()

    def test_by_id_skips_success_entries(self, subscription):
        entry = self.make_entry(outcome=Outcome.SUCCESS, fingerprint="f" * 64)

        out = StringIO()
        call_command("shopsync_replay", str(entry.pk), stdout=out)

        assert "skipped: 1" in out.getvalue()
        assert not Order.objects.exists()

    def test_shop_filter(self, subscription):
        self.make_entry(shop_domain="other.myshopify.com")

        out = StringIO()
        call_command("shopsync_replay", shop=SHOP_DOMAIN, stdout=out)

        assert "Selected 0 deliveries" in out.getvalue()

    def test_ignored_outcome(self, db):
        WebhookSubscription.objects.create(shop_domain=SHOP_DOMAIN)
        self.make_entry(outcome=Outcome.IGNORED)

        out = StringIO()
        call_command("shopsync_replay", outcome="ignored", stdout=out)

        assert Order.objects.exists()

    def test_failing_again_raises(self, subscription, mocker):
        mocker.patch(
            "django_shopsync.services.webhook_processor.UpsertReconciler.upsert",
            side_effect=StorageError("Could not store Order 9001"),
        )
        self.make_entry()

        out = StringIO()
        with pytest.raises(CommandError) as exc_info:
            call_command("shopsync_replay", stdout=out)

        assert "1 deliveries failed again" in str(exc_info.value)
        assert "Could not store Order 9001" in out.getvalue()

    def test_invalid_limit(self, db):
        with pytest.raises(CommandError):
            call_command("shopsync_replay", limit=0)
