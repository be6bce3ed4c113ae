import hashlib

import pytest

from django_shopsync.constants import Outcome, ResourceType
from django_shopsync.models import WebhookEventLog
from django_shopsync.services.idempotency import (
    compute_fingerprint,
    is_duplicate,
    payload_version,
)

SHOP = "test-store.myshopify.com"


class TestPayloadVersion:
    def test_prefers_updated_at(self):
        payload = {"created_at": "2024-01-01", "updated_at": "2024-01-02"}
        assert payload_version(payload) == "2024-01-02"

    def test_falls_back_to_created_at(self):
        assert payload_version({"created_at": "2024-01-01"}) == "2024-01-01"

    def test_empty_without_timestamps(self):
        assert payload_version({"id": 1}) == ""


class TestComputeFingerprint:
    def test_sha256_of_shop_type_id_version(self):
        fingerprint = compute_fingerprint(SHOP, ResourceType.ORDER, "9001", "T1")

        expected = hashlib.sha256(f"{SHOP}:order:9001:T1".encode()).hexdigest()
        assert fingerprint == expected
        assert len(fingerprint) == 64

    def test_accepts_plain_string_tag(self):
        assert compute_fingerprint(SHOP, "order", "9001", "T1") == compute_fingerprint(
            SHOP, ResourceType.ORDER, "9001", "T1"
        )

    def test_stable_for_same_state(self):
        assert compute_fingerprint(SHOP, ResourceType.CART, "tok", "T1") == (
            compute_fingerprint(SHOP, ResourceType.CART, "tok", "T1")
        )

    def test_new_version_changes_fingerprint(self):
        assert compute_fingerprint(SHOP, ResourceType.ORDER, "9001", "T1") != (
            compute_fingerprint(SHOP, ResourceType.ORDER, "9001", "T2")
        )

    def test_scoped_by_shop_and_type(self):
        base = compute_fingerprint(SHOP, ResourceType.ORDER, "1", "T1")
        assert base != compute_fingerprint("other.myshopify.com", ResourceType.ORDER, "1", "T1")
        assert base != compute_fingerprint(SHOP, ResourceType.PRODUCT, "1", "T1")

    def test_missing_id(self):
        expected = hashlib.sha256(f"{SHOP}:order::T1".encode()).hexdigest()
        assert compute_fingerprint(SHOP, ResourceType.ORDER, None, "T1") == expected


@pytest.mark.django_db
class TestIsDuplicate:
    def test_unseen_fingerprint(self):
        assert is_duplicate("a" * 64) is False

    def test_success_row_marks_duplicate(self):
        WebhookEventLog.objects.create(outcome=Outcome.SUCCESS, fingerprint="a" * 64)
        assert is_duplicate("a" * 64) is True

    @pytest.mark.parametrize(
        "outcome",
        [Outcome.ERROR, Outcome.IGNORED, Outcome.DUPLICATE, Outcome.REJECTED],
    )
    def test_other_outcomes_do_not_count(self, outcome):
        WebhookEventLog.objects.create(outcome=outcome, fingerprint="b" * 64)
        assert is_duplicate("b" * 64) is False
