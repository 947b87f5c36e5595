"""Templating for PagerDuty payload fields.

Field templates (summary, dedup key, details, group, component, class) are
Jinja2 templates rendered against ``Event.template_context()``. The
composer only depends on the ``TemplateEvaluator`` protocol, so tests and
alternative expression languages can be swapped in.

Helpers available in every template:
- ``to_json`` (filter and function): serialize a value to a JSON string
- ``unix_time`` (filter): format epoch seconds as RFC 3339 UTC

Missing variables are errors (StrictUndefined), so a typo in a template
fails loudly instead of rendering an empty dedup key or summary.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

import jinja2

from apps.notify.exceptions import TemplateEvaluationError

logger = logging.getLogger(__name__)


class TemplateEvaluator(Protocol):
    """Renders a named template source against a context."""

    def evaluate(self, name: str, source: str, context: Dict[str, Any]) -> str:
        """Return the rendered string or raise TemplateEvaluationError."""
        ...


def to_json(value: Any) -> str:
    """Serialize a template value to a JSON string."""
    return json.dumps(value, default=str)


def unix_time(value: Any) -> str:
    """Format epoch seconds as an RFC 3339 UTC timestamp."""
    return datetime.fromtimestamp(int(value), tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _build_environment() -> jinja2.Environment:
    env = jinja2.Environment(
        autoescape=False,
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=False,
    )
    env.filters["to_json"] = to_json
    env.filters["unix_time"] = unix_time
    env.globals["to_json"] = to_json
    return env


class JinjaTemplateEvaluator:
    """TemplateEvaluator backed by a Jinja2 environment."""

    def __init__(self, environment: Optional[jinja2.Environment] = None) -> None:
        self._env = environment or _build_environment()

    def evaluate(self, name: str, source: str, context: Dict[str, Any]) -> str:
        try:
            tmpl = self._env.from_string(source)
            rendered = tmpl.render(**(context or {}))
        except jinja2.TemplateError as e:
            raise TemplateEvaluationError(name, source, e) from e
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            # errors raised by filters (e.g. unix_time on a non-number)
            raise TemplateEvaluationError(name, source, e) from e
        logger.debug("evaluate: template=%s rendered len=%d", name, len(rendered))
        return rendered


_default_evaluator: Optional[JinjaTemplateEvaluator] = None


def get_default_evaluator() -> JinjaTemplateEvaluator:
    """Return the process-wide Jinja2 evaluator (created lazily)."""
    global _default_evaluator
    if _default_evaluator is None:
        _default_evaluator = JinjaTemplateEvaluator()
    return _default_evaluator
