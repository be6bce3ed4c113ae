from django.conf import settings as dj_settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed

PREFIX = "DJANGO_SHOPSYNC_"

DEFAULTS = {
    "WEBHOOK_SECRET": None,
    "REQUIRE_SIGNATURE": False,
    "SOURCE": "shopify",
    "RAW_PAYLOAD_MAX_LENGTH": 65536,
    "MESSAGE_MAX_LENGTH": 255,
    "ASYNC_EVENT_LOG": False,
    "IGNORE_STALE_UPDATES": False,
    "LOGS_MAX_LIMIT": 100,
    "WEBHOOK_URL": None,
}

POSITIVE_INT_SETTINGS = ("RAW_PAYLOAD_MAX_LENGTH", "MESSAGE_MAX_LENGTH", "LOGS_MAX_LIMIT")


def get_positive_int(setting, value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ImproperlyConfigured(f"{PREFIX}{setting} must be a positive integer.")
    return value


class Settings(object):
    def __getattr__(self, name):
        if name not in DEFAULTS:
            msg = "'%s' object has no attribute '%s'"
            raise AttributeError(msg % (self.__class__.__name__, name))

        value = self.get_setting(name)

        # Cache the result
        setattr(self, name, value)
        return value

    def get_setting(self, setting):
        value = getattr(dj_settings, f"{PREFIX}{setting}", DEFAULTS[setting])

        if setting == "RAW_PAYLOAD_MAX_LENGTH" and value is None:
            return value

        if setting in POSITIVE_INT_SETTINGS:
            return get_positive_int(setting, value)

        return value

    def change_setting(self, setting, value, enter, **kwargs):
        if not setting.startswith(PREFIX):
            return

        setting = setting[len(PREFIX) :]

        # ensure a valid app setting is being overridden
        if setting not in DEFAULTS:
            return

        # drop the cached value so the next access reads Django settings again
        self.__dict__.pop(setting, None)


settings = Settings()
setting_changed.connect(settings.change_setting)
