"""Rendering helpers for the start page."""

from __future__ import annotations

import logging
from pathlib import Path

from jinja2 import TemplateError

from .errors import RenderError
from .models import StartPageData
from .templating import get_environment

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "startpage.html.j2"


def build_startpage_html(data: StartPageData, template_path: str | None = None) -> str:
    """Render the start page HTML, optionally from a user-supplied template file."""
    env = get_environment()
    try:
        if template_path:
            logger.debug("Rendering start page with template %s", template_path)
            source = Path(template_path).read_text(encoding="utf-8")
            template = env.from_string(source)
        else:
            template = env.get_template(DEFAULT_TEMPLATE)
        return template.render(
            posts=data.posts, generated_at=data.generated_at, data=data
        )
    except OSError as exc:
        raise RenderError(f"Could not read template {template_path}: {exc}") from exc
    except TemplateError as exc:
        raise RenderError(f"Could not render start page: {exc}") from exc
