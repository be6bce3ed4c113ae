from django.urls import path

from django_shopsync import views

app_name = "django_shopsync"

urlpatterns = [
    path("webhooks/", views.webhook, name="webhook"),
    path("webhooks/logs/", views.webhook_logs, name="webhook_logs"),
    path(
        "webhooks/<slug:resource>/",
        views.resource_webhook,
        name="resource_webhook",
    ),
]
