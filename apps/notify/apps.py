"""Django app configuration for the notify app."""

from django.apps import AppConfig


class NotifyConfig(AppConfig):
    """Configuration for the PagerDuty notify app."""

    name = "apps.notify"
    verbose_name = "PagerDuty Notify"
