"""Django settings for the PagerDuty event handler.

The handler runs as a one-shot management command, so only the pieces of
Django it actually uses are configured here: installed apps, logging and the
PAGERDUTY_* handler options. There is no database.
"""

from __future__ import annotations

import os
from pathlib import Path

from config.env import env_bool, env_int, load_env

BASE_DIR = Path(__file__).resolve().parent.parent

load_env(BASE_DIR)

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "pagerduty-handler-not-a-secret")

DEBUG = env_bool("DJANGO_DEBUG", False)

ALLOWED_HOSTS: list[str] = []

INSTALLED_APPS = [
    "apps.alerts",
    "apps.notify",
]

DATABASES: dict = {}

USE_TZ = True
TIME_ZONE = "UTC"

# --- Logging ---

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
            # stdout carries command output; logs go to stderr like the Sensu handlers
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "apps": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
}

# --- PagerDuty handler ---

PAGERDUTY_TOKEN = os.environ.get("PAGERDUTY_TOKEN", "")
PAGERDUTY_TEAM = os.environ.get("PAGERDUTY_TEAM", "")
PAGERDUTY_TEAM_SUFFIX = os.environ.get("PAGERDUTY_TEAM_SUFFIX", "_pagerduty_token")
PAGERDUTY_DEDUP_KEY_TEMPLATE = os.environ.get(
    "PAGERDUTY_DEDUP_KEY_TEMPLATE", "{{ entity.name }}-{{ check.name }}"
)
PAGERDUTY_STATUS_MAP = os.environ.get("PAGERDUTY_STATUS_MAP", "")
PAGERDUTY_SUMMARY_TEMPLATE = os.environ.get(
    "PAGERDUTY_SUMMARY_TEMPLATE",
    "{{ entity.name }}/{{ check.name }} : {{ check.output }}",
)
PAGERDUTY_DETAILS_TEMPLATE = os.environ.get("PAGERDUTY_DETAILS_TEMPLATE", "")
PAGERDUTY_DETAILS_FORMAT = os.environ.get("PAGERDUTY_DETAILS_FORMAT", "string")
PAGERDUTY_ALTERNATE_ENDPOINT = os.environ.get("PAGERDUTY_ALTERNATE_ENDPOINT", "")
PAGERDUTY_TIMEOUT = env_int("PAGERDUTY_TIMEOUT", 30)
PAGERDUTY_CONTACT_ROUTING = env_bool("PAGERDUTY_CONTACT_ROUTING", False)
PAGERDUTY_CLIENT_NAME = os.environ.get("PAGERDUTY_CLIENT_NAME", "Sensu")
PAGERDUTY_SENSU_BASE_URL = os.environ.get("PAGERDUTY_SENSU_BASE_URL", "")
PAGERDUTY_LINK_ANNOTATIONS = env_bool("PAGERDUTY_LINK_ANNOTATIONS", False)
PAGERDUTY_USE_EVENT_TIMESTAMP = env_bool("PAGERDUTY_USE_EVENT_TIMESTAMP", False)
PAGERDUTY_CLASS_TEMPLATE = os.environ.get("PAGERDUTY_CLASS_TEMPLATE", "")
PAGERDUTY_GROUP_TEMPLATE = os.environ.get("PAGERDUTY_GROUP_TEMPLATE", "")
PAGERDUTY_COMPONENT_TEMPLATE = os.environ.get("PAGERDUTY_COMPONENT_TEMPLATE", "")
