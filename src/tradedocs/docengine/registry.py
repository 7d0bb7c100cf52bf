"""Template registry - loads, validates and caches deployed document templates.

Templates live as ``*.json`` files in a directory (the packaged
``tradedocs/doc_templates`` by default, or TRADEDOCS_TEMPLATES_DIR). The
registry is created once at service startup and kept on ``app.state``;
``reload()`` swaps in a freshly validated set, keeping the previous set if
anything fails to load.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from tradedocs.errors import TemplateNotFoundError
from tradedocs.models.template import DocType, DocumentTemplate
from tradedocs.validators.template import TemplateValidationError, validate_template

logger = logging.getLogger(__name__)

TEMPLATES_DIR_ENV = "TRADEDOCS_TEMPLATES_DIR"
DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "doc_templates"


def _resolve_templates_dir(templates_dir: Path | str | None) -> Path:
    if templates_dir is not None:
        return Path(templates_dir)
    env_dir = os.environ.get(TEMPLATES_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return DEFAULT_TEMPLATES_DIR


def load_template_file(path: Path) -> DocumentTemplate:
    """Read and validate a single template file.

    Raises:
        TemplateValidationError: If the file is not valid JSON or not a valid template.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise TemplateValidationError(f"{path.name}: invalid JSON: {e}") from e
    except OSError as e:
        raise TemplateValidationError(f"{path.name}: cannot read file: {e}") from e

    try:
        return validate_template(raw)
    except TemplateValidationError as e:
        raise TemplateValidationError(f"{path.name}: {e.message}", e.path) from e


class TemplateRegistry:
    """Validated, immutable template set keyed by DocType."""

    def __init__(self, templates_dir: Path | str | None = None) -> None:
        self._templates_dir = _resolve_templates_dir(templates_dir)
        self._templates: dict[DocType, DocumentTemplate] = {}
        self._lock = threading.Lock()
        self._loaded = False

    @property
    def templates_dir(self) -> Path:
        return self._templates_dir

    def _load_all(self) -> dict[DocType, DocumentTemplate]:
        if not self._templates_dir.is_dir():
            raise TemplateValidationError(
                f"Templates directory not found: {self._templates_dir}"
            )

        templates: dict[DocType, DocumentTemplate] = {}
        for path in sorted(self._templates_dir.glob("*.json")):
            template = load_template_file(path)
            if template.doc_type in templates:
                raise TemplateValidationError(
                    f"{path.name}: duplicate template for docType {template.doc_type}", "docType"
                )
            templates[template.doc_type] = template
        return templates

    def load(self) -> TemplateRegistry:
        """Load the template set if not loaded yet. Returns self for chaining."""
        with self._lock:
            if not self._loaded:
                self._templates = self._load_all()
                self._loaded = True
                logger.info(
                    "Loaded %d document templates from %s",
                    len(self._templates),
                    self._templates_dir,
                )
        return self

    def reload(self) -> None:
        """Re-read the template directory; on failure the previous set stays active."""
        templates = self._load_all()
        with self._lock:
            self._templates = templates
            self._loaded = True
        logger.info("Reloaded %d document templates", len(templates))

    def get(self, doc_type: DocType | str) -> DocumentTemplate:
        """Return the template for a document type.

        Raises:
            TemplateNotFoundError: If no template is registered for the type.
        """
        self.load()
        try:
            key = DocType(doc_type)
        except ValueError as e:
            raise TemplateNotFoundError(str(doc_type)) from e

        template = self._templates.get(key)
        if template is None:
            raise TemplateNotFoundError(key.value)
        return template

    def available_doc_types(self) -> list[DocType]:
        self.load()
        return sorted(self._templates)


_default_registry: TemplateRegistry | None = None


def get_template_registry() -> TemplateRegistry:
    """Return the process default registry (used by the CLI and as the app fallback)."""
    global _default_registry
    if _default_registry is None:
        _default_registry = TemplateRegistry().load()
    return _default_registry
