from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class DjangoShopSyncAppConfig(AppConfig):
    default = True
    default_auto_field = "django.db.models.BigAutoField"
    name = "django_shopsync"
    verbose_name = _("Shop Sync")

    def ready(self):
        from django_shopsync.services.router import check_registry

        check_registry()
