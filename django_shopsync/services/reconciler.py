import logging
from typing import Any

from django.db import DatabaseError, IntegrityError, models, transaction
from django.db.models import Q
from django.utils import timezone

from django_shopsync.exceptions import ConflictRetryable, StaleSnapshot, StorageError

logger = logging.getLogger(__name__)


class UpsertReconciler:
    """
    Writes normalized records into the synced-resource tables.

    Rows are keyed by (shop_domain, external_id), which the tables enforce
    with a unique constraint. The database is the only synchronization point:
    concurrent inserts of the same key are resolved by retrying as an update.
    """

    @staticmethod
    def _key(model: type[models.Model], shop_domain: str, external_id: str):
        return model.objects.filter(shop_domain=shop_domain, external_id=external_id)

    @classmethod
    def upsert(
        cls,
        model: type[models.Model],
        shop_domain: str,
        external_id: str,
        fields: dict[str, Any],
        ignore_stale: bool = False,
    ) -> tuple[models.Model, bool]:
        """
        Insert or fully update the row keyed by (shop_domain, external_id).

        Args:
            model: Synced resource model
            shop_domain: Shop the resource belongs to
            external_id: Origin identifier of the resource
            fields: Normalized column values, without the key columns
            ignore_stale: Only overwrite rows whose origin timestamp is not newer

        Returns:
            Tuple of (instance, created)

        Raises:
            StaleSnapshot: ``ignore_stale`` is set and the stored row is newer
            StorageError: the write failed
        """
        try:
            created = cls._write(model, shop_domain, external_id, fields, ignore_stale)
            instance = cls._key(model, shop_domain, external_id).get()
        except model.DoesNotExist as e:
            raise StorageError(
                f"{model.__name__} {external_id} missing after upsert"
            ) from e
        except DatabaseError as e:
            raise StorageError(f"{model.__name__} upsert failed: {e}") from e
        return instance, created

    @classmethod
    def _write(cls, model, shop_domain, external_id, fields, ignore_stale) -> bool:
        if cls._update(model, shop_domain, external_id, fields, ignore_stale):
            return False

        if ignore_stale and cls._key(model, shop_domain, external_id).exists():
            raise StaleSnapshot(f"Stored {model.__name__} {external_id} is newer")

        try:
            cls._insert(model, shop_domain, external_id, fields)
            return True
        except ConflictRetryable:
            logger.debug(
                "[django-shopsync] Insert conflict on %s %s/%s, retrying as update",
                model.__name__,
                shop_domain,
                external_id,
            )

        if cls._update(model, shop_domain, external_id, fields, ignore_stale):
            return False
        # The conflicting row is newer, or was deleted again in the meantime
        if ignore_stale:
            raise StaleSnapshot(f"Stored {model.__name__} {external_id} is newer")
        raise StorageError(
            f"{model.__name__} {external_id} vanished during conflict retry"
        )

    @classmethod
    def _update(
        cls,
        model: type[models.Model],
        shop_domain: str,
        external_id: str,
        fields: dict[str, Any],
        ignore_stale: bool,
    ) -> int:
        queryset = cls._key(model, shop_domain, external_id)
        incoming = fields.get("updated_at_shopify")
        if ignore_stale and incoming is not None:
            queryset = queryset.filter(
                Q(updated_at_shopify__isnull=True) | Q(updated_at_shopify__lte=incoming)
            )
        # QuerySet.update() skips auto_now, so stamp it here
        return queryset.update(updated_at=timezone.now(), **fields)

    @classmethod
    def _insert(
        cls,
        model: type[models.Model],
        shop_domain: str,
        external_id: str,
        fields: dict[str, Any],
    ) -> models.Model:
        try:
            # Savepoint, so a unique violation leaves the outer transaction usable
            with transaction.atomic():
                return model.objects.create(
                    shop_domain=shop_domain, external_id=external_id, **fields
                )
        except IntegrityError as e:
            raise ConflictRetryable(str(e)) from e

    @classmethod
    def patch(
        cls,
        model: type[models.Model],
        shop_domain: str,
        external_id: str,
        fields: dict[str, Any],
    ) -> bool:
        """
        Write only ``fields`` on an existing row.

        Returns:
            False when there is no row to patch
        """
        try:
            updated = cls._key(model, shop_domain, external_id).update(
                updated_at=timezone.now(), **fields
            )
        except DatabaseError as e:
            raise StorageError(f"{model.__name__} patch failed: {e}") from e
        return updated > 0

    @classmethod
    def delete(
        cls, model: type[models.Model], shop_domain: str, external_id: str
    ) -> int:
        """Delete by key; a missing row is not an error."""
        try:
            deleted, _ = cls._key(model, shop_domain, external_id).delete()
        except DatabaseError as e:
            raise StorageError(f"{model.__name__} delete failed: {e}") from e
        return deleted


