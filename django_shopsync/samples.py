"""Realistic sample payloads, used to send test deliveries to an endpoint."""
import time
from datetime import datetime
from typing import Any

from django.utils import timezone

from django_shopsync.constants import ResourceType


def _line_item(item_id: int) -> dict[str, Any]:
    return {
        "id": item_id,
        "product_id": item_id + 1,
        "variant_id": item_id + 2,
        "title": "Test Product",
        "variant_title": "Default Title",
        "sku": f"TEST-{item_id}",
        "vendor": "Test Vendor",
        "quantity": 2,
        "price": "29.99",
        "total_discount": "0.00",
        "requires_shipping": True,
        "taxable": True,
    }


def _address() -> dict[str, Any]:
    return {
        "first_name": "Test",
        "last_name": "Customer",
        "address1": "123 Test Street",
        "city": "San Juan",
        "province": "Puerto Rico",
        "country": "United States",
        "country_code": "US",
        "zip": "00901",
    }


def _customer(customer_id: int, stamp: str) -> dict[str, Any]:
    return {
        "id": customer_id,
        "email": "test.customer@example.com",
        "first_name": "Test",
        "last_name": "Customer",
        "phone": "+17875550100",
        "state": "enabled",
        "orders_count": 1,
        "total_spent": "59.98",
        "accepts_marketing": False,
        "tags": "test, webhook",
        "currency": "USD",
        "verified_email": True,
        "default_address": _address(),
        "addresses": [_address()],
        "created_at": stamp,
        "updated_at": stamp,
    }


def sample_payload(
    resource_type: ResourceType, now: datetime | None = None
) -> dict[str, Any]:
    """Build a plausible payload for ``resource_type`` with fresh ids and timestamps."""
    stamp = (now or timezone.now()).isoformat()
    base_id = int(time.time() * 1000)

    if resource_type is ResourceType.ORDER:
        return {
            "id": base_id,
            "order_number": 1001,
            "name": "#1001",
            "email": "test.customer@example.com",
            "financial_status": "pending",
            "currency": "USD",
            "subtotal_price": "59.98",
            "total_price": "64.98",
            "total_tax": "5.00",
            "total_discounts": "0.00",
            "line_items": [_line_item(base_id + 10)],
            "shipping_address": _address(),
            "billing_address": _address(),
            "customer": _customer(base_id + 20, stamp),
            "tags": "test, webhook",
            "created_at": stamp,
            "updated_at": stamp,
        }

    if resource_type is ResourceType.PRODUCT:
        return {
            "id": base_id,
            "title": f"Test Product - {stamp}",
            "body_html": "<p>Created by the test webhook command.</p>",
            "vendor": "Test Vendor",
            "product_type": "Test Category",
            "handle": f"test-product-{base_id}",
            "status": "active",
            "published_scope": "web",
            "tags": "test, webhook, demo",
            "variants": [
                {
                    "id": base_id + 1,
                    "title": "Default Title",
                    "price": "29.99",
                    "compare_at_price": "39.99",
                    "sku": f"TEST-{base_id}",
                    "position": 1,
                    "inventory_quantity": 100,
                    "option1": "Default",
                },
                {
                    "id": base_id + 2,
                    "title": "Large",
                    "price": "34.99",
                    "compare_at_price": "44.99",
                    "sku": f"TEST-L-{base_id}",
                    "position": 2,
                    "inventory_quantity": 50,
                    "option1": "Large",
                },
            ],
            "options": [
                {"id": base_id + 100, "name": "Size", "position": 1, "values": ["Default", "Large"]}
            ],
            "images": [
                {
                    "id": base_id + 200,
                    "position": 1,
                    "src": "https://example.com/images/test-product.png",
                    "alt": "Test product image",
                    "width": 800,
                    "height": 800,
                }
            ],
            "created_at": stamp,
            "updated_at": stamp,
            "published_at": stamp,
        }

    if resource_type is ResourceType.CUSTOMER:
        return _customer(base_id, stamp)

    if resource_type is ResourceType.COLLECTION:
        return {
            "id": base_id,
            "title": "Test Collection",
            "handle": f"test-collection-{base_id}",
            "sort_order": "best-selling",
            "disjunctive": False,
            "rules": [{"column": "tag", "relation": "equals", "condition": "test"}],
            "published_at": stamp,
            "updated_at": stamp,
        }

    if resource_type is ResourceType.CART:
        return {
            "id": f"cart-{base_id}",
            "token": f"cart-{base_id}",
            "note": "",
            "line_items": [_line_item(base_id + 10)],
            "item_count": 2,
            "total_price": "59.98",
            "currency": "USD",
            "created_at": stamp,
            "updated_at": stamp,
        }

    return {
        "id": base_id,
        "token": f"checkout-{base_id}",
        "cart_token": f"cart-{base_id}",
        "email": "test.customer@example.com",
        "currency": "USD",
        "subtotal_price": "59.98",
        "total_price": "64.98",
        "total_tax": "5.00",
        "line_items": [_line_item(base_id + 10)],
        "shipping_address": _address(),
        "customer": _customer(base_id + 20, stamp),
        "shipping_line": {"title": "Standard", "price": "5.00", "code": "STD"},
        "abandoned_checkout_url": f"https://example.com/checkouts/{base_id}/recover",
        "created_at": stamp,
        "updated_at": stamp,
    }
