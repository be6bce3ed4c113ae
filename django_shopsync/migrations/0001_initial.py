# Generated manually for 0.1.0

from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


def synced_resource_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("shop_domain", models.CharField(max_length=255)),
        (
            "external_id",
            models.CharField(
                help_text="Identifier assigned by the store, unique per shop",
                max_length=255,
            ),
        ),
        ("created_at_shopify", models.DateTimeField(blank=True, null=True)),
        ("updated_at_shopify", models.DateTimeField(blank=True, null=True)),
        ("synced_at", models.DateTimeField(help_text="When the last webhook was applied")),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def money():
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)


def synced_resource_options(model_name, db_table, verbose_name, verbose_name_plural):
    return {
        "verbose_name": verbose_name,
        "verbose_name_plural": verbose_name_plural,
        "db_table": db_table,
        "ordering": ["-updated_at_shopify"],
        "abstract": False,
        "indexes": [
            models.Index(
                fields=["shop_domain", "-updated_at_shopify"],
                name=f"shopsync_{model_name}_shop_idx",
            )
        ],
        "constraints": [
            models.UniqueConstraint(
                fields=("shop_domain", "external_id"),
                name=f"django_shopsync_{model_name}_shop_external_uniq",
            )
        ],
    }


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="WebhookSubscription",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "shop_domain",
                    models.CharField(
                        help_text="Store domain as sent in the shop-domain header",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "secret",
                    models.CharField(
                        blank=True,
                        help_text="Shared secret used to verify webhook signatures",
                        max_length=255,
                    ),
                ),
                ("enabled", models.BooleanField(db_index=True, default=True)),
                (
                    "topics",
                    models.JSONField(
                        blank=True, default=list, help_text="Topics registered with the store"
                    ),
                ),
                ("last_received_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Webhook Subscription",
                "verbose_name_plural": "Webhook Subscriptions",
                "db_table": "shopsync_webhook_subscription",
                "ordering": ["shop_domain"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEventLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("source", models.CharField(default="shopify", max_length=32)),
                (
                    "resource_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("order", "Order"),
                            ("product", "Product"),
                            ("customer", "Customer"),
                            ("collection", "Collection"),
                            ("cart", "Cart"),
                            ("checkout", "Checkout"),
                        ],
                        max_length=16,
                    ),
                ),
                ("topic", models.CharField(blank=True, db_index=True, max_length=128)),
                ("shop_domain", models.CharField(blank=True, max_length=255)),
                (
                    "resource_id",
                    models.CharField(
                        blank=True,
                        help_text="External id or token of the resource, once known",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "outcome",
                    models.CharField(
                        choices=[
                            ("success", "Success"),
                            ("rejected", "Rejected"),
                            ("duplicate", "Duplicate"),
                            ("ignored", "Ignored"),
                            ("error", "Error"),
                        ],
                        max_length=16,
                    ),
                ),
                ("message", models.CharField(blank=True, max_length=255)),
                (
                    "fingerprint",
                    models.CharField(
                        blank=True,
                        help_text="Idempotency fingerprint, or a body hash for rejected deliveries",
                        max_length=64,
                    ),
                ),
                ("processing_time_ms", models.PositiveIntegerField(default=0)),
                ("delivery_id", models.CharField(blank=True, max_length=255)),
                ("api_version", models.CharField(blank=True, max_length=32)),
                ("remote_ip", models.GenericIPAddressField(blank=True, null=True)),
                ("raw_payload", models.TextField(blank=True)),
                ("raw_payload_truncated", models.BooleanField(default=False)),
                (
                    "authenticated",
                    models.BooleanField(
                        default=False,
                        help_text="The delivery passed signature verification",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "replayed_from",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="replays",
                        to="django_shopsync.webhookeventlog",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event Log Entry",
                "verbose_name_plural": "Webhook Event Log",
                "db_table": "shopsync_webhook_event_log",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["fingerprint", "outcome"],
                        name="shopsync_log_fingerprint_idx",
                    ),
                    models.Index(
                        fields=["shop_domain", "-created_at"],
                        name="shopsync_log_shop_idx",
                    ),
                    models.Index(
                        fields=["outcome", "-created_at"],
                        name="shopsync_log_outcome_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("outcome", "success")),
                        fields=("fingerprint",),
                        name="shopsync_log_success_fingerprint_uniq",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=synced_resource_fields()
            + [
                ("order_number", models.IntegerField(blank=True, null=True)),
                ("name", models.CharField(blank=True, max_length=64)),
                ("email", models.CharField(blank=True, max_length=255)),
                ("phone", models.CharField(blank=True, max_length=64)),
                ("financial_status", models.CharField(blank=True, db_index=True, max_length=32)),
                ("fulfillment_status", models.CharField(blank=True, max_length=32)),
                ("currency", models.CharField(blank=True, max_length=8)),
                ("subtotal_price", money()),
                ("total_price", money()),
                ("total_tax", money()),
                ("total_discounts", money()),
                (
                    "total_shipping",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True),
                ),
                ("total_weight", models.IntegerField(default=0)),
                ("line_items", models.JSONField(blank=True, default=list)),
                ("line_items_count", models.PositiveIntegerField(default=0)),
                ("shipping_address", models.JSONField(blank=True, null=True)),
                ("billing_address", models.JSONField(blank=True, null=True)),
                (
                    "customer",
                    models.JSONField(
                        blank=True, help_text="Customer snapshot at order time", null=True
                    ),
                ),
                ("customer_id", models.CharField(blank=True, max_length=255, null=True)),
                ("fulfillments", models.JSONField(blank=True, default=list)),
                ("refunds", models.JSONField(blank=True, default=list)),
                ("note", models.TextField(blank=True)),
                ("tags", models.TextField(blank=True)),
                ("source_name", models.CharField(blank=True, max_length=255)),
                ("landing_site", models.TextField(blank=True)),
                ("referring_site", models.TextField(blank=True)),
                ("discount_codes", models.JSONField(blank=True, default=list)),
                ("buyer_accepts_marketing", models.BooleanField(default=False)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.CharField(blank=True, max_length=32)),
            ],
            options=synced_resource_options("order", "shopsync_order", "Order", "Orders"),
        ),
        migrations.CreateModel(
            name="Product",
            fields=synced_resource_fields()
            + [
                ("title", models.CharField(blank=True, max_length=255)),
                ("body_html", models.TextField(blank=True)),
                ("vendor", models.CharField(blank=True, max_length=255)),
                ("product_type", models.CharField(blank=True, max_length=255)),
                ("handle", models.CharField(blank=True, max_length=255)),
                ("status", models.CharField(blank=True, db_index=True, max_length=32)),
                ("published_at", models.DateTimeField(blank=True, null=True)),
                ("published_scope", models.CharField(blank=True, max_length=32)),
                ("tags", models.TextField(blank=True)),
                ("template_suffix", models.CharField(blank=True, max_length=255)),
                (
                    "price",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True),
                ),
                (
                    "compare_at_price",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True),
                ),
                ("image_url", models.CharField(blank=True, max_length=1024)),
                ("variants", models.JSONField(blank=True, default=list)),
                ("variant_count", models.PositiveIntegerField(default=0)),
                ("images", models.JSONField(blank=True, default=list)),
                ("options", models.JSONField(blank=True, default=list)),
                ("total_inventory", models.IntegerField(default=0)),
                ("metafields", models.JSONField(blank=True, default=list)),
            ],
            options=synced_resource_options(
                "product", "shopsync_product", "Product", "Products"
            ),
        ),
        migrations.CreateModel(
            name="Customer",
            fields=synced_resource_fields()
            + [
                ("email", models.CharField(blank=True, max_length=255)),
                ("phone", models.CharField(blank=True, max_length=64)),
                ("first_name", models.CharField(blank=True, max_length=255)),
                ("last_name", models.CharField(blank=True, max_length=255)),
                ("accepts_marketing", models.BooleanField(default=False)),
                ("accepts_marketing_updated_at", models.DateTimeField(blank=True, null=True)),
                ("marketing_opt_in_level", models.CharField(blank=True, max_length=32)),
                ("orders_count", models.PositiveIntegerField(default=0)),
                ("total_spent", money()),
                ("last_order_id", models.CharField(blank=True, max_length=255, null=True)),
                ("last_order_name", models.CharField(blank=True, max_length=64)),
                ("default_address", models.JSONField(blank=True, null=True)),
                ("addresses", models.JSONField(blank=True, default=list)),
                ("addresses_count", models.PositiveIntegerField(default=0)),
                (
                    "state",
                    models.CharField(
                        blank=True,
                        help_text="disabled, invited, enabled or declined",
                        max_length=16,
                    ),
                ),
                ("verified_email", models.BooleanField(default=False)),
                ("tax_exempt", models.BooleanField(default=False)),
                ("tax_exemptions", models.JSONField(blank=True, default=list)),
                ("tags", models.TextField(blank=True)),
                ("note", models.TextField(blank=True)),
                ("currency", models.CharField(blank=True, max_length=8)),
                ("multipass_identifier", models.CharField(blank=True, max_length=255)),
            ],
            options=synced_resource_options(
                "customer", "shopsync_customer", "Customer", "Customers"
            ),
        ),
        migrations.CreateModel(
            name="Collection",
            fields=synced_resource_fields()
            + [
                ("title", models.CharField(blank=True, max_length=255)),
                ("handle", models.CharField(blank=True, max_length=255)),
                ("body_html", models.TextField(blank=True)),
                ("sort_order", models.CharField(blank=True, max_length=32)),
                ("template_suffix", models.CharField(blank=True, max_length=255)),
                ("published_at", models.DateTimeField(blank=True, null=True)),
                ("published_scope", models.CharField(blank=True, max_length=32)),
                (
                    "collection_type",
                    models.CharField(
                        choices=[("smart", "Smart"), ("custom", "Custom")],
                        default="custom",
                        max_length=8,
                    ),
                ),
                ("disjunctive", models.BooleanField(default=False)),
                ("rules", models.JSONField(blank=True, default=list)),
                ("image", models.JSONField(blank=True, null=True)),
                ("image_url", models.CharField(blank=True, max_length=1024)),
            ],
            options=synced_resource_options(
                "collection", "shopsync_collection", "Collection", "Collections"
            ),
        ),
        migrations.CreateModel(
            name="Cart",
            fields=synced_resource_fields()
            + [
                ("note", models.TextField(blank=True)),
                ("attributes", models.JSONField(blank=True, null=True)),
                ("original_total_price", money()),
                ("total_price", money()),
                ("total_discount", money()),
                ("total_weight", models.IntegerField(default=0)),
                ("item_count", models.PositiveIntegerField(default=0)),
                ("currency", models.CharField(blank=True, max_length=8)),
                ("line_items", models.JSONField(blank=True, default=list)),
                ("line_items_count", models.PositiveIntegerField(default=0)),
                ("requires_shipping", models.BooleanField(default=False)),
            ],
            options=synced_resource_options("cart", "shopsync_cart", "Cart", "Carts"),
        ),
        migrations.CreateModel(
            name="Checkout",
            fields=synced_resource_fields()
            + [
                (
                    "checkout_id",
                    models.CharField(
                        blank=True,
                        help_text="Numeric checkout id; the token is the external id",
                        max_length=255,
                        null=True,
                    ),
                ),
                ("cart_token", models.CharField(blank=True, max_length=255)),
                ("email", models.CharField(blank=True, max_length=255)),
                ("phone", models.CharField(blank=True, max_length=64)),
                ("name", models.CharField(blank=True, max_length=64)),
                ("note", models.TextField(blank=True)),
                ("attributes", models.JSONField(blank=True, default=list)),
                ("currency", models.CharField(blank=True, max_length=8)),
                ("presentment_currency", models.CharField(blank=True, max_length=8)),
                ("subtotal_price", money()),
                ("total_price", money()),
                ("total_tax", money()),
                ("total_discounts", money()),
                ("total_line_items_price", money()),
                ("total_weight", models.IntegerField(default=0)),
                ("line_items", models.JSONField(blank=True, default=list)),
                ("line_items_count", models.PositiveIntegerField(default=0)),
                ("shipping_address", models.JSONField(blank=True, null=True)),
                ("billing_address", models.JSONField(blank=True, null=True)),
                ("customer", models.JSONField(blank=True, null=True)),
                ("customer_id", models.CharField(blank=True, max_length=255, null=True)),
                ("buyer_accepts_marketing", models.BooleanField(default=False)),
                ("shipping_line", models.JSONField(blank=True, null=True)),
                ("requires_shipping", models.BooleanField(default=False)),
                ("discount_codes", models.JSONField(blank=True, default=list)),
                ("gift_cards", models.JSONField(blank=True, default=list)),
                ("web_url", models.TextField(blank=True)),
                ("abandoned_checkout_url", models.TextField(blank=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("source_name", models.CharField(blank=True, max_length=255)),
                ("source_identifier", models.CharField(blank=True, max_length=255)),
                ("source_url", models.TextField(blank=True)),
                ("landing_site", models.TextField(blank=True)),
                ("referring_site", models.TextField(blank=True)),
            ],
            options=synced_resource_options(
                "checkout", "shopsync_checkout", "Checkout", "Checkouts"
            ),
        ),
    ]
