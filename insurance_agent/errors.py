"""
Error taxonomy and user-safe message mapping.

Domain errors raised by tool handlers carry two texts:
- `str(err)`: internal diagnostic detail (logged, never sent to the client)
- `err.user_message`: a complete French sentence safe to show to the client
"""

from __future__ import annotations

from typing import Optional, Tuple

DATA_ACCESS_MESSAGE = (
    "Je rencontre actuellement des difficultés pour accéder aux données. Veuillez réessayer dans quelques instants."
)
QUOTE_SERVICE_MESSAGE = "Le service de devis est temporairement indisponible. Veuillez réessayer plus tard."
AUTHENTICATION_MESSAGE = "Problème d'authentification. Veuillez vérifier vos informations de connexion."
GENERIC_MESSAGE = "Une erreur s'est produite lors du traitement de votre demande. Veuillez réessayer."

# Ordered: first matching needle wins. Matching is case-sensitive.
_ERROR_RULES: Tuple[Tuple[str, str], ...] = (
    ("database", DATA_ACCESS_MESSAGE),
    ("API", QUOTE_SERVICE_MESSAGE),
    ("authentication", AUTHENTICATION_MESSAGE),
)


def user_safe_message(error: object) -> str:
    """Map any error (or error text) to exactly one of the fixed client messages."""
    text = str(error) if error is not None else ""
    for needle, message in _ERROR_RULES:
        if needle in text:
            return message
    return GENERIC_MESSAGE


class ToolError(Exception):
    """Base class for errors raised by tool handlers."""

    kind = "tool_error"
    default_user_message = GENERIC_MESSAGE

    def __init__(self, detail: str, *, user_message: Optional[str] = None):
        super().__init__(detail)
        self.user_message = user_message or self.default_user_message


class SchemaViolation(ToolError):
    """Tool input rejected by its schema; the handler never ran."""

    kind = "schema_violation"
    default_user_message = "Les paramètres fournis pour cette recherche sont invalides."


class NotFound(ToolError):
    kind = "not_found"
    default_user_message = "Aucun résultat ne correspond aux informations fournies."


class UpstreamFailure(ToolError):
    kind = "upstream_failure"
    default_user_message = QUOTE_SERVICE_MESSAGE


class DataAccessFailure(ToolError):
    kind = "data_access_failure"
    default_user_message = DATA_ACCESS_MESSAGE


_CREDENTIAL_CODES = frozenset({"missing_api_key", "unauthenticated", "permission_denied", "missing_adc_credentials"})


class ModelProviderError(Exception):
    """
    The model provider could not be initialized or failed mid-stream.

    `detail` is the provider's own error text; it stays part of `str(err)` so
    the client-message rules see it. Credential codes always read as an
    authentication failure.
    """

    def __init__(self, code: str, *, detail: Optional[str] = None):
        self.code = code
        self.detail = (detail or "").strip() or None
        if code in _CREDENTIAL_CODES:
            text = f"LLM provider authentication failed ({code})"
        else:
            text = f"LLM provider unavailable ({code})"
            if self.detail:
                text = f"{text}: {self.detail}"
        super().__init__(text)
