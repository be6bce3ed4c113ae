from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _

from django_shopsync.conf import settings
from django_shopsync.constants import Outcome, ResourceType


class WebhookSubscription(models.Model):
    """
    A connected store that is allowed to push webhooks.

    Subscriptions are never deleted; disabling one makes its shop unknown to
    the webhook endpoints.
    """

    shop_domain = models.CharField(
        max_length=255,
        unique=True,
        help_text=_("Store domain as sent in the shop-domain header"),
    )
    secret = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("Shared secret used to verify webhook signatures"),
    )
    enabled = models.BooleanField(default=True, db_index=True)
    topics = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Topics registered with the store"),
    )
    last_received_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shopsync_webhook_subscription"
        verbose_name = _("Webhook Subscription")
        verbose_name_plural = _("Webhook Subscriptions")
        ordering = ["shop_domain"]

    def __str__(self):
        status = "enabled" if self.enabled else "disabled"
        return f"{self.shop_domain} ({status})"

    def get_secret(self) -> str | None:
        return self.secret or settings.WEBHOOK_SECRET or None


class WebhookEventLog(models.Model):
    """
    Append-only record of every webhook delivery attempt.

    Rows with outcome ``success`` double as the idempotency record: a
    fingerprint may appear at most once among them.
    """

    Outcome = Outcome

    source = models.CharField(max_length=32, default="shopify")
    resource_type = models.CharField(
        max_length=16,
        blank=True,
        choices=[(t.value, t.name.title()) for t in ResourceType],
    )
    topic = models.CharField(max_length=128, blank=True, db_index=True)
    shop_domain = models.CharField(max_length=255, blank=True)
    resource_id = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        help_text=_("External id or token of the resource, once known"),
    )
    outcome = models.CharField(max_length=16, choices=Outcome.choices)
    message = models.CharField(max_length=255, blank=True)
    fingerprint = models.CharField(
        max_length=64,
        blank=True,
        help_text=_("Idempotency fingerprint, or a body hash for rejected deliveries"),
    )
    processing_time_ms = models.PositiveIntegerField(default=0)
    delivery_id = models.CharField(max_length=255, blank=True)
    api_version = models.CharField(max_length=32, blank=True)
    remote_ip = models.GenericIPAddressField(blank=True, null=True)
    raw_payload = models.TextField(blank=True)
    raw_payload_truncated = models.BooleanField(default=False)
    authenticated = models.BooleanField(
        default=False,
        help_text=_("The delivery passed signature verification"),
    )
    replayed_from = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replays",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "shopsync_webhook_event_log"
        verbose_name = _("Webhook Event Log Entry")
        verbose_name_plural = _("Webhook Event Log")
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["fingerprint", "outcome"], name="shopsync_log_fingerprint_idx"
            ),
            models.Index(
                fields=["shop_domain", "-created_at"], name="shopsync_log_shop_idx"
            ),
            models.Index(
                fields=["outcome", "-created_at"], name="shopsync_log_outcome_idx"
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["fingerprint"],
                condition=models.Q(outcome="success"),
                name="shopsync_log_success_fingerprint_uniq",
            ),
        ]

    def __str__(self):
        return f"{self.topic or '-'} {self.shop_domain or '-'} ({self.outcome})"

    @property
    def is_replayable(self) -> bool:
        return (
            self.outcome in (Outcome.ERROR, Outcome.IGNORED)
            and bool(self.raw_payload)
            and not self.raw_payload_truncated
            and self.authenticated
        )


class SyncedResource(models.Model):
    """Columns shared by every resource mirrored from the store."""

    shop_domain = models.CharField(max_length=255)
    external_id = models.CharField(
        max_length=255,
        help_text=_("Identifier assigned by the store, unique per shop"),
    )
    created_at_shopify = models.DateTimeField(blank=True, null=True)
    updated_at_shopify = models.DateTimeField(blank=True, null=True)
    synced_at = models.DateTimeField(help_text=_("When the last webhook was applied"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-updated_at_shopify"]
        constraints = [
            models.UniqueConstraint(
                fields=["shop_domain", "external_id"],
                name="%(app_label)s_%(class)s_shop_external_uniq",
            ),
        ]
        indexes = [
            models.Index(
                fields=["shop_domain", "-updated_at_shopify"],
                name="shopsync_%(class)s_shop_idx",
            ),
        ]

    def __str__(self):
        return f"{self.shop_domain}:{self.external_id}"


def _money(**kwargs):
    return models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00"), **kwargs
    )


class Order(SyncedResource):
    order_number = models.IntegerField(blank=True, null=True)
    name = models.CharField(max_length=64, blank=True)
    email = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=64, blank=True)

    financial_status = models.CharField(max_length=32, blank=True, db_index=True)
    fulfillment_status = models.CharField(max_length=32, blank=True)
    currency = models.CharField(max_length=8, blank=True)
    subtotal_price = _money()
    total_price = _money()
    total_tax = _money()
    total_discounts = _money()
    total_shipping = models.DecimalField(
        max_digits=14, decimal_places=2, blank=True, null=True
    )
    total_weight = models.IntegerField(default=0)

    line_items = models.JSONField(default=list, blank=True)
    line_items_count = models.PositiveIntegerField(default=0)
    shipping_address = models.JSONField(blank=True, null=True)
    billing_address = models.JSONField(blank=True, null=True)
    customer = models.JSONField(
        blank=True, null=True, help_text=_("Customer snapshot at order time")
    )
    customer_id = models.CharField(max_length=255, blank=True, null=True)
    fulfillments = models.JSONField(default=list, blank=True)
    refunds = models.JSONField(default=list, blank=True)

    note = models.TextField(blank=True)
    tags = models.TextField(blank=True)
    source_name = models.CharField(max_length=255, blank=True)
    landing_site = models.TextField(blank=True)
    referring_site = models.TextField(blank=True)
    discount_codes = models.JSONField(default=list, blank=True)
    buyer_accepts_marketing = models.BooleanField(default=False)

    processed_at = models.DateTimeField(blank=True, null=True)
    closed_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancel_reason = models.CharField(max_length=32, blank=True)

    class Meta(SyncedResource.Meta):
        db_table = "shopsync_order"
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")

    def __str__(self):
        return self.name or super().__str__()


class Product(SyncedResource):
    title = models.CharField(max_length=255, blank=True)
    body_html = models.TextField(blank=True)
    vendor = models.CharField(max_length=255, blank=True)
    product_type = models.CharField(max_length=255, blank=True)
    handle = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=32, blank=True, db_index=True)
    published_at = models.DateTimeField(blank=True, null=True)
    published_scope = models.CharField(max_length=32, blank=True)
    tags = models.TextField(blank=True)
    template_suffix = models.CharField(max_length=255, blank=True)

    price = models.DecimalField(max_digits=14, decimal_places=2, blank=True, null=True)
    compare_at_price = models.DecimalField(
        max_digits=14, decimal_places=2, blank=True, null=True
    )
    image_url = models.CharField(max_length=1024, blank=True)

    variants = models.JSONField(default=list, blank=True)
    variant_count = models.PositiveIntegerField(default=0)
    images = models.JSONField(default=list, blank=True)
    options = models.JSONField(default=list, blank=True)
    total_inventory = models.IntegerField(default=0)
    metafields = models.JSONField(default=list, blank=True)

    class Meta(SyncedResource.Meta):
        db_table = "shopsync_product"
        verbose_name = _("Product")
        verbose_name_plural = _("Products")

    def __str__(self):
        return self.title or super().__str__()


class Customer(SyncedResource):
    email = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=64, blank=True)
    first_name = models.CharField(max_length=255, blank=True)
    last_name = models.CharField(max_length=255, blank=True)

    accepts_marketing = models.BooleanField(default=False)
    accepts_marketing_updated_at = models.DateTimeField(blank=True, null=True)
    marketing_opt_in_level = models.CharField(max_length=32, blank=True)

    orders_count = models.PositiveIntegerField(default=0)
    total_spent = _money()
    last_order_id = models.CharField(max_length=255, blank=True, null=True)
    last_order_name = models.CharField(max_length=64, blank=True)

    default_address = models.JSONField(blank=True, null=True)
    addresses = models.JSONField(default=list, blank=True)
    addresses_count = models.PositiveIntegerField(default=0)

    state = models.CharField(
        max_length=16,
        blank=True,
        help_text=_("disabled, invited, enabled or declined"),
    )
    verified_email = models.BooleanField(default=False)
    tax_exempt = models.BooleanField(default=False)
    tax_exemptions = models.JSONField(default=list, blank=True)

    tags = models.TextField(blank=True)
    note = models.TextField(blank=True)
    currency = models.CharField(max_length=8, blank=True)
    multipass_identifier = models.CharField(max_length=255, blank=True)

    class Meta(SyncedResource.Meta):
        db_table = "shopsync_customer"
        verbose_name = _("Customer")
        verbose_name_plural = _("Customers")

    def __str__(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email or super().__str__()


class Collection(SyncedResource):
    class Type(models.TextChoices):
        SMART = "smart", _("Smart")
        CUSTOM = "custom", _("Custom")

    title = models.CharField(max_length=255, blank=True)
    handle = models.CharField(max_length=255, blank=True)
    body_html = models.TextField(blank=True)
    sort_order = models.CharField(max_length=32, blank=True)
    template_suffix = models.CharField(max_length=255, blank=True)
    published_at = models.DateTimeField(blank=True, null=True)
    published_scope = models.CharField(max_length=32, blank=True)

    collection_type = models.CharField(
        max_length=8, choices=Type.choices, default=Type.CUSTOM
    )
    disjunctive = models.BooleanField(default=False)
    rules = models.JSONField(default=list, blank=True)

    image = models.JSONField(blank=True, null=True)
    image_url = models.CharField(max_length=1024, blank=True)

    class Meta(SyncedResource.Meta):
        db_table = "shopsync_collection"
        verbose_name = _("Collection")
        verbose_name_plural = _("Collections")

    def __str__(self):
        return self.title or super().__str__()


class Cart(SyncedResource):
    note = models.TextField(blank=True)
    attributes = models.JSONField(blank=True, null=True)
    original_total_price = _money()
    total_price = _money()
    total_discount = _money()
    total_weight = models.IntegerField(default=0)
    item_count = models.PositiveIntegerField(default=0)
    currency = models.CharField(max_length=8, blank=True)
    line_items = models.JSONField(default=list, blank=True)
    line_items_count = models.PositiveIntegerField(default=0)
    requires_shipping = models.BooleanField(default=False)

    class Meta(SyncedResource.Meta):
        db_table = "shopsync_cart"
        verbose_name = _("Cart")
        verbose_name_plural = _("Carts")


class Checkout(SyncedResource):
    checkout_id = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        help_text=_("Numeric checkout id; the token is the external id"),
    )
    cart_token = models.CharField(max_length=255, blank=True)
    email = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=64, blank=True)
    name = models.CharField(max_length=64, blank=True)
    note = models.TextField(blank=True)
    attributes = models.JSONField(default=list, blank=True)

    currency = models.CharField(max_length=8, blank=True)
    presentment_currency = models.CharField(max_length=8, blank=True)
    subtotal_price = _money()
    total_price = _money()
    total_tax = _money()
    total_discounts = _money()
    total_line_items_price = _money()
    total_weight = models.IntegerField(default=0)

    line_items = models.JSONField(default=list, blank=True)
    line_items_count = models.PositiveIntegerField(default=0)
    shipping_address = models.JSONField(blank=True, null=True)
    billing_address = models.JSONField(blank=True, null=True)
    customer = models.JSONField(blank=True, null=True)
    customer_id = models.CharField(max_length=255, blank=True, null=True)
    buyer_accepts_marketing = models.BooleanField(default=False)

    shipping_line = models.JSONField(blank=True, null=True)
    requires_shipping = models.BooleanField(default=False)
    discount_codes = models.JSONField(default=list, blank=True)
    gift_cards = models.JSONField(default=list, blank=True)

    web_url = models.TextField(blank=True)
    abandoned_checkout_url = models.TextField(blank=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    closed_at = models.DateTimeField(blank=True, null=True)

    source_name = models.CharField(max_length=255, blank=True)
    source_identifier = models.CharField(max_length=255, blank=True)
    source_url = models.TextField(blank=True)
    landing_site = models.TextField(blank=True)
    referring_site = models.TextField(blank=True)

    class Meta(SyncedResource.Meta):
        db_table = "shopsync_checkout"
        verbose_name = _("Checkout")
        verbose_name_plural = _("Checkouts")
