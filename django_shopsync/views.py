import logging

from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from django_shopsync.conf import settings
from django_shopsync.constants import Outcome, ResourceType
from django_shopsync.models import WebhookEventLog
from django_shopsync.services import Delivery, WebhookProcessor
from django_shopsync.utils import normalize_shop_domain

logger = logging.getLogger(__name__)

DEFAULT_LOGS_LIMIT = 50


def process_webhook_request(
    request: HttpRequest, resource_type: ResourceType | None = None
) -> JsonResponse:
    """Run a delivery through the processor and map the result to a response."""
    result = WebhookProcessor.handle(Delivery.from_request(request, resource_type))
    return JsonResponse(result.to_response_body(), status=result.status_code)


@csrf_exempt
@require_http_methods(["POST"])
def webhook(request):
    """Catch-all endpoint; the resource type comes from the topic prefix."""
    return process_webhook_request(request)


@csrf_exempt
@require_http_methods(["POST"])
def resource_webhook(request, resource):
    resource_type = ResourceType.from_slug(resource)
    if resource_type is None:
        return JsonResponse(
            {"error": "Not found", "message": f"Unknown webhook resource: {resource}"},
            status=404,
        )
    return process_webhook_request(request, resource_type)


def _parse_limit(value: str | None) -> int:
    try:
        limit = int(value) if value else DEFAULT_LOGS_LIMIT
    except ValueError:
        limit = DEFAULT_LOGS_LIMIT
    return max(1, min(limit, settings.LOGS_MAX_LIMIT))


def _serialize_log(entry: WebhookEventLog) -> dict:
    return {
        "id": entry.pk,
        "source": entry.source,
        "resource_type": entry.resource_type,
        "topic": entry.topic,
        "shop_domain": entry.shop_domain,
        "resource_id": entry.resource_id,
        "status": entry.outcome,
        "message": entry.message,
        "fingerprint": entry.fingerprint,
        "processing_time_ms": entry.processing_time_ms,
        "delivery_id": entry.delivery_id,
        "api_version": entry.api_version,
        "raw_payload_truncated": entry.raw_payload_truncated,
        "replayed_from": entry.replayed_from_id,
        "created_at": entry.created_at.isoformat(),
    }


@require_http_methods(["GET"])
def webhook_logs(request):
    if not request.user.is_authenticated:
        return JsonResponse({"error": "Not authenticated"}, status=401)
    if not request.user.is_staff:
        logger.warning(
            "[django-shopsync] Non-staff user %s denied webhook log access",
            request.user.pk,
        )
        return JsonResponse({"error": "Admin access required"}, status=403)

    status = request.GET.get("status")
    if status and status not in Outcome.values:
        return JsonResponse({"error": f"Invalid status: {status}"}, status=400)

    base = WebhookEventLog.objects.all()
    shop = normalize_shop_domain(request.GET.get("shop"))
    if shop:
        base = base.filter(shop_domain=shop)

    logs = base.order_by("-created_at")
    if status:
        logs = logs.filter(outcome=status)
    topic = request.GET.get("topic")
    if topic:
        logs = logs.filter(topic=topic)
    logs = logs[: _parse_limit(request.GET.get("limit"))]

    summary = {
        "total": base.count(),
        "success": base.filter(outcome=Outcome.SUCCESS).count(),
        "errors": base.filter(outcome=Outcome.ERROR).count(),
        "today": base.filter(created_at__date=timezone.localdate()).count(),
    }

    return JsonResponse(
        {"logs": [_serialize_log(entry) for entry in logs], "summary": summary}
    )
