import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from django.db import DatabaseError, IntegrityError, connections, transaction

from django_shopsync.conf import settings
from django_shopsync.constants import Outcome
from django_shopsync.exceptions import DuplicateDelivery
from django_shopsync.models import WebhookEventLog
from django_shopsync.utils import truncate

logger = logging.getLogger(__name__)


class EventLogger:
    """
    Appends delivery attempts to the webhook event log.

    Writing the log is a side channel: apart from ``claim()``, nothing here
    raises, so a failing log write can never change the response sent back
    to the store.
    """

    _executor: ThreadPoolExecutor | None = None
    _executor_lock = threading.Lock()

    @staticmethod
    def build(**entry: Any) -> WebhookEventLog:
        """Instantiate (without saving) a log row, applying truncation limits."""
        raw_payload = entry.pop("raw_payload", b"")
        if isinstance(raw_payload, bytes):
            raw_payload = raw_payload.decode("utf-8", errors="replace")
        raw_payload, raw_truncated = truncate(
            raw_payload, settings.RAW_PAYLOAD_MAX_LENGTH
        )
        message, _ = truncate(entry.pop("message", ""), settings.MESSAGE_MAX_LENGTH)

        entry.setdefault("source", settings.SOURCE)
        if entry.get("resource_type") is not None:
            entry["resource_type"] = getattr(
                entry["resource_type"], "value", entry["resource_type"]
            )
        else:
            entry["resource_type"] = ""

        return WebhookEventLog(
            message=message,
            raw_payload=raw_payload,
            raw_payload_truncated=raw_truncated,
            **entry,
        )

    @classmethod
    def record(cls, **entry: Any) -> WebhookEventLog | None:
        """Save one log row; failures are reported and swallowed."""
        try:
            log_entry = cls.build(**entry)
            with transaction.atomic():
                log_entry.save()
            return log_entry
        except Exception:
            logger.exception(
                "[django-shopsync] Failed to write event log entry for %s %s",
                entry.get("topic") or "-",
                entry.get("shop_domain") or "-",
            )
            return None

    @classmethod
    def dispatch(cls, **entry: Any) -> None:
        """
        Fire-and-forget variant of ``record()``.

        With ``ASYNC_EVENT_LOG`` enabled the row is written by a single
        background worker, otherwise inline.
        """
        if not settings.ASYNC_EVENT_LOG:
            cls.record(**entry)
            return

        try:
            cls._get_executor().submit(cls._record_in_worker, entry)
        except RuntimeError:
            # Executor shut down (interpreter exiting)
            cls.record(**entry)

    @classmethod
    def _record_in_worker(cls, entry: dict[str, Any]) -> None:
        try:
            cls.record(**entry)
        finally:
            connections.close_all()

    @classmethod
    def _get_executor(cls) -> ThreadPoolExecutor:
        with cls._executor_lock:
            if cls._executor is None:
                cls._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="shopsync-event-log"
                )
            return cls._executor

    @classmethod
    def flush(cls) -> None:
        """Wait for queued background writes to finish."""
        with cls._executor_lock:
            executor, cls._executor = cls._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    @classmethod
    def claim(cls, **entry: Any) -> WebhookEventLog | None:
        """
        Write the ``success`` row for a fingerprint.

        Must be called inside the transaction that applied the change. The
        fingerprint is unique among success rows, so losing a race to a
        concurrent delivery of the same change raises ``DuplicateDelivery``
        and the caller's transaction rolls back.

        Raises:
            DuplicateDelivery: another delivery already claimed the fingerprint
        """
        entry["outcome"] = Outcome.SUCCESS
        log_entry = cls.build(**entry)
        try:
            with transaction.atomic():
                log_entry.save()
        except IntegrityError as e:
            raise DuplicateDelivery(
                f"Fingerprint {log_entry.fingerprint} already applied"
            ) from e
        except DatabaseError:
            logger.exception(
                "[django-shopsync] Failed to write success log entry for %s %s",
                log_entry.topic,
                log_entry.shop_domain,
            )
            return None
        return log_entry
