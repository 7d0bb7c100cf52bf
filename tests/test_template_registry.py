"""Tests for TemplateRegistry and the deployed template set."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tradedocs.docengine.registry import DEFAULT_TEMPLATES_DIR, TEMPLATES_DIR_ENV, TemplateRegistry
from tradedocs.errors import TemplateNotFoundError
from tradedocs.models.template import DocType
from tradedocs.validators.template import TemplateValidationError

VARIATION_TEMPLATE = json.loads((DEFAULT_TEMPLATES_DIR / "variation.json").read_text(encoding="utf-8"))


def _write(directory: Path, name: str, payload: object) -> Path:
    path = directory / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestDeployedTemplates:
    """Every packaged template must load and validate."""

    def test_all_doc_types_have_a_template(self, templates: TemplateRegistry) -> None:
        assert set(templates.available_doc_types()) == set(DocType)

    @pytest.mark.parametrize("doc_type", list(DocType))
    def test_every_template_has_review_disclaimer(
        self, templates: TemplateRegistry, doc_type: DocType
    ) -> None:
        template = templates.get(doc_type)
        disclaimer = template.disclaimer.lower()

        assert "draft" in disclaimer or "review" in disclaimer

    def test_payment_claim_is_wa_specific(self, templates: TemplateRegistry) -> None:
        assert templates.get(DocType.PAYMENT_CLAIM).jurisdiction == "AU-WA"

    def test_get_accepts_string(self, templates: TemplateRegistry) -> None:
        assert templates.get("SWMS").doc_type == DocType.SWMS


class TestRegistryLoading:
    """Registry loading from a custom directory."""

    def test_loads_from_env_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write(tmp_path, "variation.json", VARIATION_TEMPLATE)
        monkeypatch.setenv(TEMPLATES_DIR_ENV, str(tmp_path))

        registry = TemplateRegistry()

        assert registry.available_doc_types() == [DocType.VARIATION]
        assert registry.templates_dir == tmp_path

    def test_unknown_doc_type_raises_not_found(self, tmp_path: Path) -> None:
        _write(tmp_path, "variation.json", VARIATION_TEMPLATE)
        registry = TemplateRegistry(tmp_path)

        with pytest.raises(TemplateNotFoundError):
            registry.get(DocType.SWMS)

        with pytest.raises(TemplateNotFoundError):
            registry.get("NOT_A_TYPE")

    def test_malformed_file_names_the_file(self, tmp_path: Path) -> None:
        broken = dict(VARIATION_TEMPLATE, disclaimer="Final.")
        _write(tmp_path, "broken.json", broken)

        with pytest.raises(TemplateValidationError, match="broken.json"):
            TemplateRegistry(tmp_path).load()

    def test_invalid_json_fails_load(self, tmp_path: Path) -> None:
        (tmp_path / "bad.json").write_text("{ nope", encoding="utf-8")

        with pytest.raises(TemplateValidationError, match="invalid JSON"):
            TemplateRegistry(tmp_path).load()

    def test_duplicate_doc_type_fails_load(self, tmp_path: Path) -> None:
        _write(tmp_path, "a.json", VARIATION_TEMPLATE)
        _write(tmp_path, "b.json", VARIATION_TEMPLATE)

        with pytest.raises(TemplateValidationError, match="duplicate template"):
            TemplateRegistry(tmp_path).load()

    def test_failed_reload_keeps_previous_templates(self, tmp_path: Path) -> None:
        _write(tmp_path, "variation.json", VARIATION_TEMPLATE)
        registry = TemplateRegistry(tmp_path).load()

        _write(tmp_path, "variation.json", dict(VARIATION_TEMPLATE, sections=[]))
        with pytest.raises(TemplateValidationError):
            registry.reload()

        assert registry.get(DocType.VARIATION).title == VARIATION_TEMPLATE["title"]
