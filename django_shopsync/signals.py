from django.dispatch import Signal

# Fired on commit after a delivery was reconciled into storage
resource_synced = Signal()  # sender=model, instance=obj, created=bool, topic=str
resource_patched = Signal()  # sender=model, shop_domain=str, external_id=str, fields=list, topic=str
resource_deleted = Signal()  # sender=model, shop_domain=str, external_id=str, deleted=int, topic=str

delivery_rejected = Signal()  # sender=WebhookEventLog, shop_domain=str, topic=str, reason=str
