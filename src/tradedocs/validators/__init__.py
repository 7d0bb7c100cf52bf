"""Template and issuer validators - fail fast, no side effects."""

from tradedocs.validators.issuer import (
    IssuerPolicy,
    IssuerValidationResult,
    load_issuer_policies,
    resolve_policy,
    validate_issuer_for_doc,
)
from tradedocs.validators.template import TemplateValidationError, validate_template

__all__ = [
    "IssuerPolicy",
    "IssuerValidationResult",
    "TemplateValidationError",
    "load_issuer_policies",
    "resolve_policy",
    "validate_issuer_for_doc",
    "validate_template",
]
