import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

from django.db import transaction
from django.http import HttpRequest
from django.utils import timezone

from django_shopsync.conf import settings
from django_shopsync.constants import (
    API_VERSION_HEADER,
    DELIVERY_ID_HEADER,
    HMAC_HEADER,
    SHOP_DOMAIN_HEADER,
    TOPIC_HEADER,
    Action,
    Outcome,
    ResourceType,
)
from django_shopsync.exceptions import (
    AuthenticationError,
    DuplicateDelivery,
    NotReplayable,
    PatchTargetMissing,
    ShopSyncError,
    UnknownShopError,
    WebhookValidationError,
)
from django_shopsync.models import WebhookEventLog, WebhookSubscription
from django_shopsync.services import idempotency, router
from django_shopsync.services.event_logger import EventLogger
from django_shopsync.services.reconciler import UpsertReconciler
from django_shopsync.services.verification import verify_signature
from django_shopsync.signals import (
    delivery_rejected,
    resource_deleted,
    resource_patched,
    resource_synced,
)
from django_shopsync.utils import body_hash, get_remote_ip, normalize_shop_domain

logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    """One inbound webhook POST, captured before the body is parsed."""

    raw_body: bytes
    headers: Mapping[str, str]
    resource_type: ResourceType | None = None
    remote_ip: str | None = None

    def __post_init__(self):
        self.headers = {str(k).lower(): v for k, v in self.headers.items()}

    @classmethod
    def from_request(
        cls, request: HttpRequest, resource_type: ResourceType | None = None
    ) -> "Delivery":
        return cls(
            raw_body=request.body,
            headers=request.headers,
            resource_type=resource_type,
            remote_ip=get_remote_ip(request),
        )

    def header(self, name: str) -> str:
        return str(self.headers.get(name.lower()) or "").strip()


@dataclass
class ProcessingResult:
    outcome: str
    status_code: int
    message: str
    error: str = ""
    resource_id: str | None = None
    fingerprint: str = ""
    processing_time_ms: int = 0
    log_entry: WebhookEventLog | None = None

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def to_response_body(self) -> dict[str, Any]:
        if not self.ok:
            return {"error": self.error, "message": self.message}
        return {
            "status": str(self.outcome),
            "message": self.message,
            "processingTime": self.processing_time_ms,
        }


@dataclass
class _Attempt:
    """What is known about a delivery so far, for logging whichever way it ends."""

    delivery: Delivery
    started: float = field(default_factory=time.monotonic)
    topic: str = ""
    shop_domain: str = ""
    resource_type: ResourceType | None = None
    resource_id: str | None = None
    fingerprint: str = ""
    authenticated: bool = False
    replayed_from: WebhookEventLog | None = None

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    def log_fields(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "shop_domain": self.shop_domain,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "fingerprint": self.fingerprint or body_hash(self.delivery.raw_body),
            "processing_time_ms": self.elapsed_ms,
            "delivery_id": self.delivery.header(DELIVERY_ID_HEADER),
            "api_version": self.delivery.header(API_VERSION_HEADER),
            "remote_ip": self.delivery.remote_ip,
            "raw_payload": self.delivery.raw_body,
            "authenticated": self.authenticated,
            "replayed_from": self.replayed_from,
        }


class WebhookProcessor:
    """
    Runs one delivery through verify, de-duplicate, route and reconcile.

    Every delivery ends in exactly one outcome (success, rejected, duplicate,
    ignored or error) and one event log row. ``handle()`` never raises.
    """

    SUCCESS_MESSAGE = "Webhook processed"

    @classmethod
    def handle(cls, delivery: Delivery) -> ProcessingResult:
        return cls._run(_Attempt(delivery=delivery), verify=True)

    @classmethod
    def replay(cls, log_entry: WebhookEventLog) -> ProcessingResult:
        """
        Re-run a logged delivery from its stored raw payload.

        The signature is not checked again, so only entries whose original
        delivery passed authentication can be replayed.

        Raises:
            NotReplayable: the entry's outcome or payload does not allow it
        """
        if not log_entry.is_replayable:
            raise NotReplayable(
                f"Log entry {log_entry.pk} ({log_entry.outcome}) cannot be replayed"
            )

        headers = {
            TOPIC_HEADER: log_entry.topic,
            SHOP_DOMAIN_HEADER: log_entry.shop_domain,
            DELIVERY_ID_HEADER: log_entry.delivery_id,
            API_VERSION_HEADER: log_entry.api_version,
        }
        resource_type = (
            ResourceType(log_entry.resource_type) if log_entry.resource_type else None
        )
        delivery = Delivery(
            raw_body=log_entry.raw_payload.encode("utf-8"),
            headers=headers,
            resource_type=resource_type,
            remote_ip=log_entry.remote_ip,
        )
        logger.info(
            "[django-shopsync] Replaying log entry %s (%s %s)",
            log_entry.pk,
            log_entry.topic,
            log_entry.shop_domain,
        )
        attempt = _Attempt(
            delivery=delivery, authenticated=True, replayed_from=log_entry
        )
        return cls._run(attempt, verify=False)

    @classmethod
    def _run(cls, attempt: _Attempt, verify: bool) -> ProcessingResult:
        try:
            return cls._process(attempt, verify)
        except ShopSyncError as e:
            return cls._finish(attempt, e.outcome, e.status_code, e.message, e.error)
        except Exception as e:
            logger.exception(
                "[django-shopsync] Unexpected error processing %s from %s",
                attempt.topic or "-",
                attempt.shop_domain or "-",
            )
            return cls._finish(
                attempt,
                Outcome.ERROR,
                ShopSyncError.status_code,
                str(e) or e.__class__.__name__,
                ShopSyncError.error,
            )

    @classmethod
    def _process(cls, attempt: _Attempt, verify: bool) -> ProcessingResult:
        delivery = attempt.delivery
        attempt.topic = delivery.header(TOPIC_HEADER)
        attempt.shop_domain = normalize_shop_domain(delivery.header(SHOP_DOMAIN_HEADER))
        attempt.resource_type = delivery.resource_type or ResourceType.from_topic(
            attempt.topic
        )

        if not attempt.topic or not attempt.shop_domain:
            raise WebhookValidationError("Missing required headers")

        logger.info(
            "[django-shopsync] Received %s from %s", attempt.topic, attempt.shop_domain
        )

        subscription = WebhookSubscription.objects.filter(
            shop_domain=attempt.shop_domain, enabled=True
        ).first()
        if subscription is None:
            raise UnknownShopError(f"No active subscription for {attempt.shop_domain}")

        if verify:
            cls._authenticate(delivery, subscription)
            attempt.authenticated = True
            WebhookSubscription.objects.filter(pk=subscription.pk).update(
                last_received_at=timezone.now()
            )

        payload = cls._parse_body(delivery.raw_body)

        descriptor = (
            router.get_descriptor(attempt.resource_type)
            if attempt.resource_type
            else None
        )
        if descriptor is not None:
            attempt.resource_id = descriptor.external_id(payload)
        elif payload.get("id") not in (None, ""):
            attempt.resource_id = str(payload["id"])

        attempt.fingerprint = idempotency.compute_fingerprint(
            attempt.shop_domain,
            attempt.resource_type.value if attempt.resource_type else "",
            attempt.resource_id,
            idempotency.payload_version(payload),
        )
        if idempotency.is_duplicate(attempt.fingerprint):
            raise DuplicateDelivery()

        if delivery.resource_type is not None:
            route = router.resolve(delivery.resource_type, attempt.topic)
        else:
            route = router.resolve_any(attempt.topic)

        external_id = route.descriptor.require_external_id(payload)
        attempt.resource_id = external_id

        with transaction.atomic():
            cls._apply(route, attempt.shop_domain, external_id, payload)
            claimed = EventLogger.claim(
                message=cls.SUCCESS_MESSAGE, **attempt.log_fields()
            )

        result = cls._result(attempt, Outcome.SUCCESS, 200, cls.SUCCESS_MESSAGE)
        result.log_entry = claimed
        logger.info(
            "[django-shopsync] Completed %s %s/%s in %sms",
            attempt.topic,
            attempt.shop_domain,
            external_id,
            result.processing_time_ms,
        )
        return result

    @staticmethod
    def _authenticate(delivery: Delivery, subscription: WebhookSubscription) -> None:
        """
        Raises:
            AuthenticationError: signature missing or wrong, or no secret while
                signatures are required
        """
        secret = subscription.get_secret()
        if not secret:
            if settings.REQUIRE_SIGNATURE:
                raise AuthenticationError(
                    f"No webhook secret configured for {subscription.shop_domain}"
                )
            logger.warning(
                "[django-shopsync] No webhook secret for %s, accepting unverified delivery",
                subscription.shop_domain,
            )
            return

        if not verify_signature(delivery.raw_body, delivery.header(HMAC_HEADER), secret):
            logger.error(
                "[django-shopsync] Signature verification failed for %s",
                subscription.shop_domain,
            )
            raise AuthenticationError("Signature verification failed")

    @staticmethod
    def _parse_body(raw_body: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise WebhookValidationError("Invalid JSON") from e
        if not isinstance(payload, dict):
            raise WebhookValidationError("Payload must be a JSON object")
        return payload

    @classmethod
    def _apply(
        cls,
        route: router.Route,
        shop_domain: str,
        external_id: str,
        payload: dict[str, Any],
    ) -> None:
        """Perform the storage action for ``route``; call inside a transaction."""
        model = route.model
        now = timezone.now()

        if route.action is Action.UPSERT:
            record = route.descriptor.normalizer(payload, shop_domain, now)
            fields = {
                k: v
                for k, v in record.items()
                if k not in ("shop_domain", "external_id")
            }
            instance, created = UpsertReconciler.upsert(
                model,
                shop_domain,
                external_id,
                fields,
                ignore_stale=settings.IGNORE_STALE_UPDATES,
            )
            logger.info(
                "[django-shopsync] %s %s %s/%s",
                "Created" if created else "Updated",
                model.__name__,
                shop_domain,
                external_id,
            )
            transaction.on_commit(
                lambda: resource_synced.send(
                    sender=model, instance=instance, created=created, topic=route.topic
                ),
                robust=True,
            )

        elif route.action is Action.STATUS_PATCH:
            fields = route.build_patch(payload, now)
            if not UpsertReconciler.patch(model, shop_domain, external_id, fields):
                logger.error(
                    "[django-shopsync] %s for missing %s %s/%s dropped",
                    route.topic,
                    model.__name__,
                    shop_domain,
                    external_id,
                )
                raise PatchTargetMissing(
                    f"{model.__name__} {external_id} not found for {route.topic}"
                )
            logger.info(
                "[django-shopsync] Patched %s %s/%s (%s)",
                model.__name__,
                shop_domain,
                external_id,
                route.topic,
            )
            transaction.on_commit(
                lambda: resource_patched.send(
                    sender=model,
                    shop_domain=shop_domain,
                    external_id=external_id,
                    fields=sorted(fields),
                    topic=route.topic,
                ),
                robust=True,
            )

        elif route.action is Action.DELETE:
            deleted = UpsertReconciler.delete(model, shop_domain, external_id)
            logger.info(
                "[django-shopsync] Deleted %s %s/%s (%s rows)",
                model.__name__,
                shop_domain,
                external_id,
                deleted,
            )
            transaction.on_commit(
                lambda: resource_deleted.send(
                    sender=model,
                    shop_domain=shop_domain,
                    external_id=external_id,
                    deleted=deleted,
                    topic=route.topic,
                ),
                robust=True,
            )

    @staticmethod
    def _result(
        attempt: _Attempt, outcome: str, status_code: int, message: str, error: str = ""
    ) -> ProcessingResult:
        return ProcessingResult(
            outcome=outcome,
            status_code=status_code,
            message=message,
            error=error,
            resource_id=attempt.resource_id,
            fingerprint=attempt.fingerprint,
            processing_time_ms=attempt.elapsed_ms,
        )

    @classmethod
    def _finish(
        cls,
        attempt: _Attempt,
        outcome: str,
        status_code: int,
        message: str,
        error: str,
    ) -> ProcessingResult:
        """Log a delivery that did not end in success and build its result."""
        if outcome == Outcome.DUPLICATE:
            logger.debug(
                "[django-shopsync] Duplicate %s %s/%s",
                attempt.topic,
                attempt.shop_domain,
                attempt.resource_id,
            )
        elif outcome == Outcome.IGNORED:
            logger.warning(
                "[django-shopsync] Ignored %s from %s: %s",
                attempt.topic or "-",
                attempt.shop_domain or "-",
                message,
            )
        elif outcome == Outcome.REJECTED:
            logger.warning(
                "[django-shopsync] Rejected delivery %s from %s: %s",
                attempt.topic or "-",
                attempt.shop_domain or "-",
                message,
            )
        else:
            logger.error(
                "[django-shopsync] Failed %s from %s: %s",
                attempt.topic or "-",
                attempt.shop_domain or "-",
                message,
            )

        result = cls._result(attempt, outcome, status_code, message, error)
        EventLogger.dispatch(outcome=outcome, message=message, **attempt.log_fields())

        if outcome == Outcome.REJECTED:
            delivery_rejected.send_robust(
                sender=WebhookEventLog,
                shop_domain=attempt.shop_domain,
                topic=attempt.topic,
                reason=message,
            )
        return result
