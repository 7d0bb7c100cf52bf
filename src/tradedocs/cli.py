"""tradedocs CLI - template checks, validation and offline rendering.

Usage:
    tradedocs templates check [--dir PATH]
    tradedocs validate [--input PATH]
    tradedocs render [--input PATH] [--approved] [--issued]
    tradedocs db upgrade [--revision REV]

Exit codes:
    0: Success / validation passed
    1: Validation failed / Internal error
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tradedocs.docengine.registry import DEFAULT_TEMPLATES_DIR, TEMPLATES_DIR_ENV, load_template_file
from tradedocs.exporters.export import DocumentExporter
from tradedocs.models.draft import DocumentDraft, DocumentStatus
from tradedocs.models.render_model import RenderModel
from tradedocs.validators.template import TemplateValidationError, validate_template


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str, path: str = "$") -> dict[str, Any]:
    return {
        "errors": [{"code": code, "message": message, "path": path}],
        "pass": False,
    }


def _load_json_input(input_path: str | None) -> tuple[Any, str | None]:
    """Load JSON from a file or stdin.

    Returns:
        Tuple of (parsed_data, error_message). If error_message is not None,
        parsed_data should be ignored.
    """
    try:
        if input_path:
            with open(input_path, encoding="utf-8") as f:
                content = f.read()
        else:
            content = sys.stdin.read()

        if not content.strip():
            return None, "Empty input"

        return json.loads(content), None
    except FileNotFoundError:
        return None, f"File not found: {input_path}"
    except json.JSONDecodeError as e:
        return None, f"Invalid JSON: {e}"
    except OSError as e:
        return None, f"Cannot read input: {e}"


def cmd_templates_check(args: argparse.Namespace) -> int:
    """Validate every deployed template and report per file."""
    templates_dir = Path(args.dir or os.environ.get(TEMPLATES_DIR_ENV) or DEFAULT_TEMPLATES_DIR)
    if not templates_dir.is_dir():
        _output_json(
            _make_error_result("TEMPLATES_DIR_NOT_FOUND", f"Not a directory: {templates_dir}")
        )
        return 1

    reports: list[dict[str, Any]] = []
    seen: dict[str, str] = {}
    for path in sorted(templates_dir.glob("*.json")):
        try:
            template = load_template_file(path)
        except TemplateValidationError as e:
            reports.append({"file": path.name, "pass": False, "error": e.message, "path": e.path})
            continue

        doc_type = template.doc_type.value
        if doc_type in seen:
            reports.append(
                {
                    "file": path.name,
                    "pass": False,
                    "error": f"duplicate docType {doc_type} (also in {seen[doc_type]})",
                    "path": "docType",
                }
            )
            continue
        seen[doc_type] = path.name
        reports.append({"file": path.name, "pass": True, "doc_type": doc_type})

    passed = bool(reports) and all(r["pass"] for r in reports)
    _output_json({"dir": str(templates_dir), "pass": passed, "templates": reports})
    return 0 if passed else 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a single template."""
    data, error_msg = _load_json_input(args.input)
    if error_msg is not None:
        _output_json(_make_error_result("INVALID_JSON", error_msg))
        return 1

    try:
        template = validate_template(data)
    except TemplateValidationError as e:
        _output_json(_make_error_result(e.code, e.message, e.path))
        return 1

    _output_json({"doc_type": template.doc_type.value, "errors": [], "pass": True})
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    """Render a saved draft or bare render model as plain text on stdout."""
    data, error_msg = _load_json_input(args.input)
    if error_msg is not None:
        _output_json(_make_error_result("INVALID_JSON", error_msg))
        return 1

    try:
        if isinstance(data, dict) and "data" in data and "job_id" in data:
            draft = DocumentDraft.model_validate(data)
            model = draft.data
            approved = draft.approved or args.approved
            issued = draft.status == DocumentStatus.ISSUED or args.issued
            issued_record_id = draft.issued_record_id
        else:
            model = RenderModel.model_validate(data)
            approved = args.approved
            issued = args.issued
            issued_record_id = None
    except ValidationError as e:
        _output_json(_make_error_result("INVALID_DRAFT", str(e)))
        return 1

    text = DocumentExporter().render_text(
        model, approved=approved, issued=issued, issued_record_id=issued_record_id
    )
    sys.stdout.write(text)
    if not text.endswith("\n"):
        sys.stdout.write("\n")
    return 0


def cmd_db_upgrade(args: argparse.Namespace) -> int:
    """Apply draft-table migrations to TRADEDOCS_DATABASE_URL."""
    from tradedocs.persistence.migrate import run_upgrade

    run_upgrade(revision=args.revision)
    _output_json({"pass": True, "revision": args.revision})
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tradedocs",
        description="tradedocs - job pack document engine CLI",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    templates_parser = subparsers.add_parser("templates", help="Template registry operations")
    templates_subparsers = templates_parser.add_subparsers(
        dest="templates_command", help="Template subcommands"
    )
    check_parser = templates_subparsers.add_parser(
        "check", help="Validate every deployed template"
    )
    check_parser.add_argument(
        "--dir",
        default=None,
        metavar="PATH",
        help="Templates directory (default: TRADEDOCS_TEMPLATES_DIR or the packaged set)",
    )

    validate_parser = subparsers.add_parser("validate", help="Validate a single template")
    validate_parser.add_argument(
        "--input",
        default=None,
        metavar="PATH",
        help="Path to template JSON (reads from stdin if omitted)",
    )

    render_parser = subparsers.add_parser("render", help="Render a draft as plain text")
    render_parser.add_argument(
        "--input",
        default=None,
        metavar="PATH",
        help="Path to draft or render model JSON (reads from stdin if omitted)",
    )
    render_parser.add_argument(
        "--approved",
        action="store_true",
        default=False,
        help="Render as approved (omits warnings and disclaimer)",
    )
    render_parser.add_argument(
        "--issued",
        action="store_true",
        default=False,
        help="Render as issued",
    )

    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_command", help="Database subcommands")
    upgrade_parser = db_subparsers.add_parser("upgrade", help="Apply migrations")
    upgrade_parser.add_argument("--revision", default="head", help="Target revision")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return 0

        if args.command == "templates":
            if getattr(args, "templates_command", None) == "check":
                return cmd_templates_check(args)
            parser.parse_args(["templates", "--help"])
            return 0

        if args.command == "validate":
            return cmd_validate(args)

        if args.command == "render":
            return cmd_render(args)

        if args.command == "db":
            if getattr(args, "db_command", None) == "upgrade":
                return cmd_db_upgrade(args)
            parser.parse_args(["db", "--help"])
            return 0

        return 0

    except Exception as e:
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
