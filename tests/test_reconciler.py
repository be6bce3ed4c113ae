"""Tests for the upsert reconciler, including the insert-conflict retry path."""

from datetime import datetime, timezone

import pytest
from django.db import DatabaseError

from django_shopsync.exceptions import StaleSnapshot, StorageError
from django_shopsync.models import Order, Product
from django_shopsync.services import normalizers
from django_shopsync.services.reconciler import UpsertReconciler
from tests.payloads import T1, T2, make_order_payload

pytestmark = pytest.mark.django_db

SHOP = "test-store.myshopify.com"
NOW = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)


def order_fields(**overrides) -> dict:
    record = normalizers.normalize_order(make_order_payload(**overrides), SHOP, NOW)
    record.pop("shop_domain")
    record.pop("external_id")
    return record


class TestUpsert:
    def test_insert_when_absent(self):
        instance, created = UpsertReconciler.upsert(Order, SHOP, "9001", order_fields())

        assert created is True
        assert instance.external_id == "9001"
        assert Order.objects.count() == 1

    def test_update_when_present(self):
        UpsertReconciler.upsert(Order, SHOP, "9001", order_fields())

        instance, created = UpsertReconciler.upsert(
            Order, SHOP, "9001", order_fields(updated_at=T2, financial_status="paid")
        )

        assert created is False
        assert Order.objects.count() == 1
        assert instance.financial_status == "paid"

    def test_update_bumps_local_updated_at(self):
        first, _ = UpsertReconciler.upsert(Order, SHOP, "9001", order_fields())
        second, _ = UpsertReconciler.upsert(Order, SHOP, "9001", order_fields(updated_at=T2))

        assert second.updated_at >= first.updated_at
        assert second.created_at == first.created_at

    def test_same_external_id_in_another_shop_is_separate(self):
        UpsertReconciler.upsert(Order, SHOP, "9001", order_fields())
        UpsertReconciler.upsert(Order, "other.myshopify.com", "9001", order_fields())

        assert Order.objects.count() == 2

    def test_insert_conflict_retries_as_update(self, mocker):
        original_update = UpsertReconciler._update.__func__
        calls = []

        def racing_update(model, shop_domain, external_id, fields, ignore_stale):
            calls.append(external_id)
            if len(calls) == 1:
                # A concurrent delivery inserts the row between our update and insert
                Order.objects.create(
                    shop_domain=shop_domain,
                    external_id=external_id,
                    synced_at=NOW,
                    financial_status="pending",
                )
                return 0
            return original_update(
                UpsertReconciler, model, shop_domain, external_id, fields, ignore_stale
            )

        mocker.patch.object(UpsertReconciler, "_update", side_effect=racing_update)

        instance, created = UpsertReconciler.upsert(
            Order, SHOP, "9001", order_fields(financial_status="paid")
        )

        assert created is False
        assert len(calls) == 2
        assert Order.objects.count() == 1
        assert instance.financial_status == "paid"

    def test_database_error_becomes_storage_error(self, mocker):
        mocker.patch.object(UpsertReconciler, "_key", side_effect=DatabaseError("disk full"))

        with pytest.raises(StorageError, match="disk full"):
            UpsertReconciler.upsert(Order, SHOP, "9001", order_fields())


class TestStaleGuard:
    def test_older_snapshot_rejected(self):
        UpsertReconciler.upsert(Order, SHOP, "9001", order_fields(updated_at=T2))

        with pytest.raises(StaleSnapshot):
            UpsertReconciler.upsert(
                Order,
                SHOP,
                "9001",
                order_fields(updated_at=T1, financial_status="refunded"),
                ignore_stale=True,
            )

        assert Order.objects.get().financial_status == "pending"

    def test_newer_snapshot_applied(self):
        UpsertReconciler.upsert(Order, SHOP, "9001", order_fields(updated_at=T1))

        instance, created = UpsertReconciler.upsert(
            Order,
            SHOP,
            "9001",
            order_fields(updated_at=T2, financial_status="paid"),
            ignore_stale=True,
        )

        assert created is False
        assert instance.financial_status == "paid"

    def test_older_snapshot_overwrites_without_guard(self):
        UpsertReconciler.upsert(Order, SHOP, "9001", order_fields(updated_at=T2))

        instance, _ = UpsertReconciler.upsert(
            Order, SHOP, "9001", order_fields(updated_at=T1, financial_status="refunded")
        )

        assert instance.financial_status == "refunded"


class TestPatch:
    def test_only_listed_fields_written(self):
        UpsertReconciler.upsert(Order, SHOP, "9001", order_fields())

        patched = UpsertReconciler.patch(
            Order, SHOP, "9001", {"financial_status": "cancelled", "cancel_reason": "fraud"}
        )

        order = Order.objects.get()
        assert patched is True
        assert order.financial_status == "cancelled"
        assert order.cancel_reason == "fraud"
        assert str(order.total_price) == "64.98"

    def test_missing_row(self):
        assert UpsertReconciler.patch(Order, SHOP, "404", {"financial_status": "paid"}) is False
        assert Order.objects.count() == 0


class TestDelete:
    def test_delete_existing(self):
        UpsertReconciler.upsert(Order, SHOP, "9001", order_fields())

        assert UpsertReconciler.delete(Order, SHOP, "9001") == 1
        assert Order.objects.count() == 0

    def test_delete_missing_is_not_an_error(self):
        assert UpsertReconciler.delete(Product, SHOP, "404") == 0

    def test_delete_scoped_to_shop(self):
        UpsertReconciler.upsert(Order, SHOP, "9001", order_fields())

        assert UpsertReconciler.delete(Order, "other.myshopify.com", "9001") == 0
        assert Order.objects.count() == 1

    def test_database_error_becomes_storage_error(self, mocker):
        mocker.patch.object(UpsertReconciler, "_key", side_effect=DatabaseError("locked"))

        with pytest.raises(StorageError):
            UpsertReconciler.delete(Order, SHOP, "9001")
