import json
import logging

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from django.urls import reverse
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from django_shopsync.constants import Outcome
from django_shopsync.exceptions import NotReplayable
from django_shopsync.models import (
    Cart,
    Checkout,
    Collection,
    Customer,
    Order,
    Product,
    WebhookEventLog,
    WebhookSubscription,
)
from django_shopsync.services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)


class ReadOnlyAdminMixin:
    """Rows here are written by webhook deliveries only."""

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def has_change_permission(self, request: HttpRequest, obj=None) -> bool:
        return False

    def has_delete_permission(self, request: HttpRequest, obj=None) -> bool:
        return False


@admin.register(WebhookSubscription)
class WebhookSubscriptionAdmin(admin.ModelAdmin):
    list_display = (
        "shop_domain",
        "enabled",
        "display_has_secret",
        "last_received_at",
        "created_at",
    )
    list_filter = ("enabled",)
    search_fields = ("shop_domain",)
    ordering = ["shop_domain"]
    readonly_fields = ("last_received_at", "created_at", "updated_at")

    fieldsets = (
        (None, {"fields": ("shop_domain", "enabled", "topics")}),
        (_("Signature"), {"fields": ("secret",)}),
        (
            _("Activity"),
            {"fields": ("last_received_at", "created_at", "updated_at")},
        ),
    )

    actions = ["disable_subscriptions"]

    def has_delete_permission(
        self, request: HttpRequest, obj: WebhookSubscription | None = None
    ) -> bool:
        return False

    @admin.display(description=_("Secret"), boolean=True)
    def display_has_secret(self, obj: WebhookSubscription) -> bool:
        return bool(obj.secret)

    @admin.action(description=_("Disable selected subscriptions"))
    def disable_subscriptions(
        self, request: HttpRequest, queryset: QuerySet[WebhookSubscription]
    ) -> None:
        count = queryset.filter(enabled=True).update(enabled=False)
        logger.info("[django-shopsync] Admin disabled %s subscriptions", count)
        self.message_user(
            request, _(f"Disabled {count} subscriptions."), messages.SUCCESS
        )


@admin.register(WebhookEventLog)
class WebhookEventLogAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "topic",
        "shop_domain",
        "resource_id",
        "display_outcome_colored",
        "message",
        "processing_time_ms",
        "created_at",
    )
    list_display_links = ("id",)
    list_filter = ("outcome", "resource_type", "source", "created_at")
    search_fields = (
        "id",
        "topic",
        "shop_domain",
        "resource_id",
        "fingerprint",
        "delivery_id",
    )
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            _("Delivery"),
            {
                "fields": (
                    "id",
                    "source",
                    "topic",
                    "resource_type",
                    "shop_domain",
                    "resource_id",
                    "delivery_id",
                    "api_version",
                    "remote_ip",
                    "created_at",
                )
            },
        ),
        (
            _("Outcome"),
            {
                "fields": (
                    "outcome",
                    "message",
                    "authenticated",
                    "fingerprint",
                    "processing_time_ms",
                    "replayed_from_link",
                )
            },
        ),
        (
            _("Payload"),
            {"fields": ("raw_payload_truncated", "payload_display")},
        ),
    )

    readonly_fields = (
        "id",
        "source",
        "topic",
        "resource_type",
        "shop_domain",
        "resource_id",
        "delivery_id",
        "api_version",
        "remote_ip",
        "created_at",
        "outcome",
        "message",
        "authenticated",
        "fingerprint",
        "processing_time_ms",
        "replayed_from_link",
        "raw_payload_truncated",
        "payload_display",
    )

    actions = ["replay_deliveries"]

    @admin.display(description=_("Outcome"), ordering="outcome")
    def display_outcome_colored(self, obj: WebhookEventLog) -> str:
        colors = {
            Outcome.SUCCESS: "green",
            Outcome.DUPLICATE: "gray",
            Outcome.IGNORED: "gray",
            Outcome.REJECTED: "orange",
            Outcome.ERROR: "red",
        }
        color = colors.get(obj.outcome, "black")
        return format_html(
            '<span style="color: {};">{}</span>', color, obj.get_outcome_display()
        )

    @admin.display(description=_("Replay of"))
    def replayed_from_link(self, obj: WebhookEventLog) -> str:
        if obj.replayed_from_id:
            url = reverse(
                "admin:django_shopsync_webhookeventlog_change",
                args=[obj.replayed_from_id],
            )
            return format_html('<a href="{}">#{}</a>', url, obj.replayed_from_id)
        return "-"

    @admin.display(description=_("Payload (JSON)"))
    def payload_display(self, obj: WebhookEventLog) -> str:
        try:
            formatted_json = json.dumps(
                json.loads(obj.raw_payload), indent=2, ensure_ascii=False
            )
        except ValueError:
            formatted_json = obj.raw_payload
        return format_html("<pre>{}</pre>", formatted_json)

    @admin.action(description=_("Replay selected deliveries"))
    def replay_deliveries(
        self, request: HttpRequest, queryset: QuerySet[WebhookEventLog]
    ) -> None:
        replayable = [entry for entry in queryset if entry.is_replayable]

        if not replayable:
            self.message_user(
                request,
                _(
                    "No replayable deliveries selected (only authenticated, "
                    "untruncated error or ignored entries)."
                ),
                messages.INFO,
            )
            return

        replayed_count = 0
        error_count = 0

        for entry in replayable:
            try:
                result = WebhookProcessor.replay(entry)
            except NotReplayable as e:
                logger.warning("[django-shopsync] %s", e.message)
                error_count += 1
                continue

            logger.info(
                "[django-shopsync] Admin replayed log entry %s: %s",
                entry.pk,
                result.outcome,
            )
            if result.outcome == Outcome.ERROR:
                error_count += 1
            else:
                replayed_count += 1

        if error_count == 0:
            self.message_user(
                request,
                _(f"Successfully replayed {replayed_count} deliveries."),
                messages.SUCCESS,
            )
        elif replayed_count == 0:
            self.message_user(
                request,
                _(f"Failed to replay: {error_count} errors."),
                messages.ERROR,
            )
        else:
            self.message_user(
                request,
                _(f"Replayed {replayed_count} deliveries with {error_count} errors."),
                messages.WARNING,
            )

    def get_queryset(self, request: HttpRequest) -> QuerySet[WebhookEventLog]:
        qs = super().get_queryset(request)
        return qs.select_related("replayed_from")


class SyncedResourceAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_filter = ("shop_domain",)
    search_fields = ("external_id", "shop_domain")
    ordering = ["-updated_at_shopify"]
    date_hierarchy = "synced_at"


@admin.register(Order)
class OrderAdmin(SyncedResourceAdmin):
    list_display = (
        "name",
        "shop_domain",
        "external_id",
        "financial_status",
        "fulfillment_status",
        "total_price",
        "currency",
        "updated_at_shopify",
    )
    list_filter = ("shop_domain", "financial_status", "fulfillment_status")
    search_fields = ("external_id", "name", "email", "shop_domain")


@admin.register(Product)
class ProductAdmin(SyncedResourceAdmin):
    list_display = (
        "title",
        "shop_domain",
        "external_id",
        "status",
        "price",
        "variant_count",
        "total_inventory",
        "updated_at_shopify",
    )
    list_filter = ("shop_domain", "status", "vendor")
    search_fields = ("external_id", "title", "handle", "vendor")


@admin.register(Customer)
class CustomerAdmin(SyncedResourceAdmin):
    list_display = (
        "external_id",
        "shop_domain",
        "email",
        "first_name",
        "last_name",
        "state",
        "orders_count",
        "total_spent",
    )
    list_filter = ("shop_domain", "state", "accepts_marketing")
    search_fields = ("external_id", "email", "first_name", "last_name", "phone")


@admin.register(Collection)
class CollectionAdmin(SyncedResourceAdmin):
    list_display = (
        "title",
        "shop_domain",
        "external_id",
        "collection_type",
        "published_at",
        "updated_at_shopify",
    )
    list_filter = ("shop_domain", "collection_type")
    search_fields = ("external_id", "title", "handle")


@admin.register(Cart)
class CartAdmin(SyncedResourceAdmin):
    list_display = (
        "external_id",
        "shop_domain",
        "item_count",
        "total_price",
        "currency",
        "updated_at_shopify",
    )


@admin.register(Checkout)
class CheckoutAdmin(SyncedResourceAdmin):
    list_display = (
        "external_id",
        "shop_domain",
        "email",
        "total_price",
        "currency",
        "completed_at",
        "updated_at_shopify",
    )
    list_filter = ("shop_domain", "completed_at")
    search_fields = ("external_id", "checkout_id", "email", "cart_token")
