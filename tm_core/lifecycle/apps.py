# tm_core/lifecycle/apps.py
from django.apps import AppConfig


class LifecycleConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "tm_core.lifecycle"
    verbose_name = "Case & appointment lifecycle"
