"""Template loading."""

from __future__ import annotations

import logging
from pathlib import Path

from cfn_deployer.errors import TemplateError

logger = logging.getLogger(__name__)


def read_template(path: str | Path) -> str:
    """Return the raw template text at *path*.

    Raises:
        TemplateError: If the file is missing, unreadable, or empty.
    """
    path = Path(path)
    if not path.is_file():
        raise TemplateError(f"CFN template not found: {path}")
    try:
        body = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TemplateError(f"Cannot read CFN template {path}: {exc}") from exc
    if not body.strip():
        raise TemplateError(f"CFN template is empty: {path}")
    logger.debug("Read template %s (%d bytes)", path, len(body))
    return body
