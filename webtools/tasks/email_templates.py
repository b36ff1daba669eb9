import logging
import os
from ..errors import InternalError, NotFound


logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".html"
BLANK_TEMPLATE = "blank"


def list_templates(templates_dir: str) -> list[str]:
    """Names (file stems) of the HTML templates in templates_dir."""
    try:
        files = os.listdir(templates_dir)
    except OSError as e:
        logger.error(f"Cannot list templates in '{templates_dir}': {e}")
        raise InternalError(str(e))

    return sorted(f[: -len(TEMPLATE_SUFFIX)] for f in files if f.endswith(TEMPLATE_SUFFIX))


def _template_path(templates_dir: str, name: str) -> str | None:
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        return None
    return os.path.join(templates_dir, f"{name}{TEMPLATE_SUFFIX}")


def load_template(templates_dir: str, name: str) -> str:
    """
    Read a template's HTML.

    Raises:
        NotFound: unknown template, or a name that would escape templates_dir
    """
    path = _template_path(templates_dir, name)
    if path is None:
        raise NotFound(f'Template "{name}" not found.')

    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError:
        raise NotFound(f'Template "{name}" not found.')


def resolve_body(templates_dir: str, template: str, message: str | None) -> str:
    """HTML body for a mail: the named template, falling back to the inline message."""
    body = message if isinstance(message, str) else ""
    if template and template != BLANK_TEMPLATE:
        try:
            body = load_template(templates_dir, template)
        except NotFound:
            logger.warning(f'Template "{template}" not found. Falling back to provided HTML content.')
    return body
