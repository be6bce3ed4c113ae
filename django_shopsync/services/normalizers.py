"""
Payload normalizers.

Each ``normalize_<resource>`` maps one webhook payload onto the column values
of its synced model. They are pure: no database access, no mutation of the
payload. Optional fields are defaulted (money to ``"0.00"``, counts to 0,
nested objects to None, arrays to ``[]``); only a missing identity field is an
error.
"""
from datetime import datetime
from typing import Any, Callable

from django.utils import timezone

from django_shopsync.exceptions import WebhookValidationError
from django_shopsync.utils import money, money_or_none, parse_timestamp

ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "address1",
    "address2",
    "city",
    "province",
    "province_code",
    "country",
    "country_code",
    "zip",
    "phone",
    "company",
)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


# IntegerField range shared by every supported database
INT_MIN, INT_MAX = -(2**31), 2**31 - 1


def _optional_int(value: Any, minimum: int = INT_MIN) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if minimum <= number <= INT_MAX else None


def _int(value: Any) -> int:
    return _optional_int(value) or 0


def _count(value: Any) -> int:
    return _optional_int(value, minimum=0) or 0


def _str_id(value: Any) -> str | None:
    return None if value in (None, "") else str(value)


def _project(source: Any, fields: tuple[str, ...]) -> dict[str, Any] | None:
    if not isinstance(source, dict):
        return None
    return {field: source.get(field) for field in fields}


def _project_list(
    items: Any, project: Callable[[dict[str, Any]], dict[str, Any] | None]
) -> list[dict[str, Any]]:
    if not isinstance(items, list):
        return []
    projected = (project(item) for item in items if isinstance(item, dict))
    return [item for item in projected if item is not None]


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _origin_timestamps(payload: dict[str, Any], now: datetime | None) -> dict[str, Any]:
    return {
        "created_at_shopify": parse_timestamp(payload.get("created_at")),
        "updated_at_shopify": parse_timestamp(payload.get("updated_at")),
        "synced_at": now or timezone.now(),
    }


def require_identity(payload: dict[str, Any], *keys: str) -> str:
    """
    Return the first non-empty identity field as a string.

    Raises:
        WebhookValidationError: none of ``keys`` is present
    """
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return str(value)
    raise WebhookValidationError(f"Payload missing identity field: {' or '.join(keys)}")


def normalize_address(address: Any) -> dict[str, Any] | None:
    return _project(address, ADDRESS_FIELDS)


def normalize_customer_address(address: Any) -> dict[str, Any] | None:
    return _project(address, ("id",) + ADDRESS_FIELDS + ("country_name", "default"))


def normalize_line_item(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": item.get("id"),
        "product_id": item.get("product_id"),
        "variant_id": item.get("variant_id"),
        "title": item.get("title"),
        "variant_title": item.get("variant_title"),
        "sku": item.get("sku"),
        "vendor": item.get("vendor"),
        "quantity": _int(item.get("quantity")),
        "price": money(item.get("price")),
        "line_price": money_or_none(item.get("line_price")),
        "compare_at_price": money_or_none(item.get("compare_at_price")),
        "total_discount": money(item.get("total_discount")),
        "fulfillment_status": item.get("fulfillment_status"),
        "fulfillment_service": item.get("fulfillment_service"),
        "requires_shipping": bool(item.get("requires_shipping")),
        "taxable": bool(item.get("taxable")),
        "gift_card": bool(item.get("gift_card")),
        "properties": item.get("properties") or [],
    }


def normalize_fulfillment(fulfillment: dict[str, Any]) -> dict[str, Any]:
    return _project(
        fulfillment,
        (
            "id",
            "status",
            "tracking_number",
            "tracking_url",
            "tracking_company",
            "shipment_status",
            "created_at",
            "updated_at",
        ),
    )


def normalize_fulfillments(fulfillments: Any) -> list[dict[str, Any]]:
    return _project_list(fulfillments, normalize_fulfillment)


def normalize_refund(refund: dict[str, Any]) -> dict[str, Any]:
    return _project(refund, ("id", "created_at", "note", "restock"))


def normalize_customer_snapshot(customer: Any) -> dict[str, Any] | None:
    """Denormalized customer embedded in orders and checkouts."""
    if not isinstance(customer, dict):
        return None
    return {
        "id": customer.get("id"),
        "email": customer.get("email"),
        "first_name": customer.get("first_name"),
        "last_name": customer.get("last_name"),
        "phone": customer.get("phone"),
        "orders_count": _count(customer.get("orders_count")),
        "total_spent": money(customer.get("total_spent")),
        "tags": customer.get("tags"),
        "accepts_marketing": bool(customer.get("accepts_marketing")),
    }


def normalize_variant(variant: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": variant.get("id"),
        "title": variant.get("title"),
        "price": money(variant.get("price")),
        "compare_at_price": money_or_none(variant.get("compare_at_price")),
        "sku": variant.get("sku"),
        "barcode": variant.get("barcode"),
        "position": variant.get("position"),
        "inventory_policy": variant.get("inventory_policy"),
        "inventory_quantity": _int(variant.get("inventory_quantity")),
        "inventory_management": variant.get("inventory_management"),
        "inventory_item_id": variant.get("inventory_item_id"),
        "fulfillment_service": variant.get("fulfillment_service"),
        "weight": variant.get("weight"),
        "weight_unit": variant.get("weight_unit"),
        "grams": variant.get("grams"),
        "requires_shipping": bool(variant.get("requires_shipping")),
        "taxable": bool(variant.get("taxable")),
        "tax_code": variant.get("tax_code"),
        "option1": variant.get("option1"),
        "option2": variant.get("option2"),
        "option3": variant.get("option3"),
        "image_id": variant.get("image_id"),
        "created_at": variant.get("created_at"),
        "updated_at": variant.get("updated_at"),
    }


def normalize_image(image: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": image.get("id"),
        "src": image.get("src"),
        "alt": image.get("alt"),
        "width": image.get("width"),
        "height": image.get("height"),
        "position": image.get("position"),
        "variant_ids": image.get("variant_ids") or [],
    }


def normalize_option(option: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": option.get("id"),
        "name": option.get("name"),
        "position": option.get("position"),
        "values": option.get("values") or [],
    }


def normalize_metafield(metafield: dict[str, Any]) -> dict[str, Any]:
    return _project(metafield, ("key", "namespace", "value", "type"))


def normalize_rule(rule: dict[str, Any]) -> dict[str, Any]:
    return _project(rule, ("column", "relation", "condition"))


def normalize_shipping_line(shipping_line: Any) -> dict[str, Any] | None:
    if not isinstance(shipping_line, dict):
        return None
    return {
        "title": shipping_line.get("title"),
        "price": money(shipping_line.get("price")),
        "code": shipping_line.get("code"),
        "source": shipping_line.get("source"),
    }


def _total_shipping(order: dict[str, Any]) -> str | None:
    price_set = order.get("total_shipping_price_set") or {}
    shop_money = price_set.get("shop_money") or {}
    return money_or_none(shop_money.get("amount"))


def normalize_order(
    order: dict[str, Any], shop_domain: str, now: datetime | None = None
) -> dict[str, Any]:
    external_id = require_identity(order, "id")
    line_items = _project_list(order.get("line_items"), normalize_line_item)
    customer = normalize_customer_snapshot(order.get("customer"))

    return {
        "shop_domain": shop_domain,
        "external_id": external_id,
        "order_number": _optional_int(order.get("order_number")),
        "name": _text(order.get("name")),
        "email": _text(order.get("email")),
        "phone": _text(order.get("phone")),
        # Financial
        "financial_status": _text(order.get("financial_status")),
        "fulfillment_status": _text(order.get("fulfillment_status")),
        "currency": _text(order.get("currency")),
        "subtotal_price": money(order.get("subtotal_price")),
        "total_price": money(order.get("total_price")),
        "total_tax": money(order.get("total_tax")),
        "total_discounts": money(order.get("total_discounts")),
        "total_shipping": _total_shipping(order),
        "total_weight": _int(order.get("total_weight")),
        # Items and parties
        "line_items": line_items,
        "line_items_count": len(line_items),
        "shipping_address": normalize_address(order.get("shipping_address")),
        "billing_address": normalize_address(order.get("billing_address")),
        "customer": customer,
        "customer_id": _str_id(customer["id"]) if customer else None,
        "fulfillments": normalize_fulfillments(order.get("fulfillments")),
        "refunds": _project_list(order.get("refunds"), normalize_refund),
        # Attribution
        "note": _text(order.get("note")),
        "tags": _text(order.get("tags")),
        "source_name": _text(order.get("source_name")),
        "landing_site": _text(order.get("landing_site")),
        "referring_site": _text(order.get("referring_site")),
        "discount_codes": _list(order.get("discount_codes")),
        "buyer_accepts_marketing": bool(order.get("buyer_accepts_marketing")),
        # Lifecycle
        "processed_at": parse_timestamp(order.get("processed_at")),
        "closed_at": parse_timestamp(order.get("closed_at")),
        "cancelled_at": parse_timestamp(order.get("cancelled_at")),
        "cancel_reason": _text(order.get("cancel_reason")),
        **_origin_timestamps(order, now),
    }


def normalize_product(
    product: dict[str, Any], shop_domain: str, now: datetime | None = None
) -> dict[str, Any]:
    external_id = require_identity(product, "id")
    variants = _project_list(product.get("variants"), normalize_variant)
    images = _project_list(product.get("images"), normalize_image)

    primary_image = product.get("image") or {}
    image_url = primary_image.get("src") or (images[0]["src"] if images else None)
    first_variant = variants[0] if variants else {}

    return {
        "shop_domain": shop_domain,
        "external_id": external_id,
        "title": _text(product.get("title")),
        "body_html": _text(product.get("body_html")),
        "vendor": _text(product.get("vendor")),
        "product_type": _text(product.get("product_type")),
        "handle": _text(product.get("handle")),
        "status": _text(product.get("status")),
        "published_at": parse_timestamp(product.get("published_at")),
        "published_scope": _text(product.get("published_scope")),
        "tags": _text(product.get("tags")),
        "template_suffix": _text(product.get("template_suffix")),
        # Pricing comes from the first variant
        "price": first_variant.get("price"),
        "compare_at_price": first_variant.get("compare_at_price"),
        "image_url": _text(image_url),
        "variants": variants,
        "variant_count": len(variants),
        "images": images,
        "options": _project_list(product.get("options"), normalize_option),
        "total_inventory": _int(sum(v["inventory_quantity"] for v in variants)),
        "metafields": _project_list(product.get("metafields"), normalize_metafield),
        **_origin_timestamps(product, now),
    }


def normalize_customer(
    customer: dict[str, Any], shop_domain: str, now: datetime | None = None
) -> dict[str, Any]:
    external_id = require_identity(customer, "id")
    addresses = _project_list(customer.get("addresses"), normalize_customer_address)

    return {
        "shop_domain": shop_domain,
        "external_id": external_id,
        "email": _text(customer.get("email")),
        "phone": _text(customer.get("phone")),
        "first_name": _text(customer.get("first_name")),
        "last_name": _text(customer.get("last_name")),
        # Marketing
        "accepts_marketing": bool(customer.get("accepts_marketing")),
        "accepts_marketing_updated_at": parse_timestamp(
            customer.get("accepts_marketing_updated_at")
        ),
        "marketing_opt_in_level": _text(customer.get("marketing_opt_in_level")),
        # Order stats
        "orders_count": _count(customer.get("orders_count")),
        "total_spent": money(customer.get("total_spent")),
        "last_order_id": _str_id(customer.get("last_order_id")),
        "last_order_name": _text(customer.get("last_order_name")),
        "default_address": normalize_customer_address(customer.get("default_address")),
        "addresses": addresses,
        "addresses_count": len(addresses),
        # Account
        "state": _text(customer.get("state")),
        "verified_email": bool(customer.get("verified_email")),
        "tax_exempt": bool(customer.get("tax_exempt")),
        "tax_exemptions": _list(customer.get("tax_exemptions")),
        "tags": _text(customer.get("tags")),
        "note": _text(customer.get("note")),
        "currency": _text(customer.get("currency")),
        "multipass_identifier": _text(customer.get("multipass_identifier")),
        **_origin_timestamps(customer, now),
    }


def normalize_collection(
    collection: dict[str, Any], shop_domain: str, now: datetime | None = None
) -> dict[str, Any]:
    external_id = require_identity(collection, "id")
    rules = _project_list(collection.get("rules"), normalize_rule)
    image = _project(collection.get("image"), ("src", "alt", "width", "height", "created_at"))

    return {
        "shop_domain": shop_domain,
        "external_id": external_id,
        "title": _text(collection.get("title")),
        "handle": _text(collection.get("handle")),
        "body_html": _text(collection.get("body_html")),
        "sort_order": _text(collection.get("sort_order")),
        "template_suffix": _text(collection.get("template_suffix")),
        "published_at": parse_timestamp(collection.get("published_at")),
        "published_scope": _text(collection.get("published_scope")),
        # Smart collections are the ones carrying rules
        "collection_type": "smart" if rules else "custom",
        "disjunctive": bool(collection.get("disjunctive")),
        "rules": rules,
        "image": image,
        "image_url": _text(image["src"] if image else None),
        **_origin_timestamps(collection, now),
    }


def normalize_cart(
    cart: dict[str, Any], shop_domain: str, now: datetime | None = None
) -> dict[str, Any]:
    external_id = require_identity(cart, "token", "id")
    line_items = _project_list(cart.get("line_items"), normalize_line_item)
    attributes = cart.get("attributes")

    return {
        "shop_domain": shop_domain,
        "external_id": external_id,
        "note": _text(cart.get("note")),
        "attributes": attributes if isinstance(attributes, (dict, list)) else None,
        "original_total_price": money(cart.get("original_total_price")),
        "total_price": money(cart.get("total_price")),
        "total_discount": money(cart.get("total_discount")),
        "total_weight": _int(cart.get("total_weight")),
        "item_count": _count(cart.get("item_count")),
        "currency": _text(cart.get("currency")),
        "line_items": line_items,
        "line_items_count": len(line_items),
        "requires_shipping": bool(cart.get("requires_shipping")),
        **_origin_timestamps(cart, now),
    }


def normalize_checkout(
    checkout: dict[str, Any], shop_domain: str, now: datetime | None = None
) -> dict[str, Any]:
    external_id = require_identity(checkout, "token")
    line_items = _project_list(checkout.get("line_items"), normalize_line_item)
    customer = normalize_customer_snapshot(checkout.get("customer"))

    return {
        "shop_domain": shop_domain,
        "external_id": external_id,
        "checkout_id": _str_id(checkout.get("id")),
        "cart_token": _text(checkout.get("cart_token")),
        "email": _text(checkout.get("email")),
        "phone": _text(checkout.get("phone")),
        "name": _text(checkout.get("name")),
        "note": _text(checkout.get("note")),
        "attributes": _list(checkout.get("note_attributes")),
        # Financial
        "currency": _text(checkout.get("currency")),
        "presentment_currency": _text(checkout.get("presentment_currency")),
        "subtotal_price": money(checkout.get("subtotal_price")),
        "total_price": money(checkout.get("total_price")),
        "total_tax": money(checkout.get("total_tax")),
        "total_discounts": money(checkout.get("total_discounts")),
        "total_line_items_price": money(checkout.get("total_line_items_price")),
        "total_weight": _int(checkout.get("total_weight")),
        # Items and parties
        "line_items": line_items,
        "line_items_count": len(line_items),
        "shipping_address": normalize_address(checkout.get("shipping_address")),
        "billing_address": normalize_address(checkout.get("billing_address")),
        "customer": customer,
        "customer_id": _str_id(customer["id"]) if customer else None,
        "buyer_accepts_marketing": bool(checkout.get("buyer_accepts_marketing")),
        "shipping_line": normalize_shipping_line(checkout.get("shipping_line")),
        "requires_shipping": bool(checkout.get("requires_shipping")),
        "discount_codes": _list(checkout.get("discount_codes")),
        "gift_cards": _list(checkout.get("gift_cards")),
        # Recovery and status
        "web_url": _text(checkout.get("web_url")),
        "abandoned_checkout_url": _text(checkout.get("abandoned_checkout_url")),
        "completed_at": parse_timestamp(checkout.get("completed_at")),
        "closed_at": parse_timestamp(checkout.get("closed_at")),
        # Attribution
        "source_name": _text(checkout.get("source_name")),
        "source_identifier": _text(checkout.get("source_identifier")),
        "source_url": _text(checkout.get("source_url")),
        "landing_site": _text(checkout.get("landing_site")),
        "referring_site": _text(checkout.get("referring_site")),
        **_origin_timestamps(checkout, now),
    }
