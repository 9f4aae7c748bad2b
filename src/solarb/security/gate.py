"""
Request authentication and input sanitization.

The gate holds no global state: it is built from the Settings object
and handed to whichever components need it.
"""

import hmac
import html
import logging
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, SecretStr

from solarb.config.settings import Settings


logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


class SecurityGate:
    """
    Authenticates and sanitizes inbound requests.

    Authentication fails closed: anything ambiguous is rejected.
    """

    def __init__(self, api_secret: SecretStr | str) -> None:
        """
        Initialize gate.

        Args:
            api_secret: Secret that callers must present as their API key.
        """
        secret = api_secret.get_secret_value() if isinstance(api_secret, SecretStr) else api_secret
        self._secret_bytes = secret.encode("utf-8") if secret else b""

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecurityGate":
        return cls(settings.api_secret)

    def authenticate(self, request: BaseModel | Mapping[str, Any]) -> bool:
        """
        Check a request's credential and completeness.

        Args:
            request: Parsed request model or raw field mapping. The
                credential is read from `api_key` (or `apiKey`).

        Returns:
            True iff no field is null or empty and the credential
            matches the configured secret.
        """
        if not self._secret_bytes:
            logger.error("Authentication rejected: no API secret configured")
            return False

        fields = request.model_dump() if isinstance(request, BaseModel) else dict(request)
        if not fields:
            return False

        for value in fields.values():
            if value is None:
                return False
            if isinstance(value, str) and not value.strip():
                return False

        credential = fields.get("api_key", fields.get("apiKey"))
        if not isinstance(credential, str):
            return False

        return hmac.compare_digest(credential.encode("utf-8"), self._secret_bytes)

    def authenticate_key(self, credential: str | None) -> bool:
        """Check a bare credential, e.g. from an X-API-Key header."""
        if credential is None:
            return False
        return self.authenticate({"api_key": credential})

    @staticmethod
    def sanitize_value(value: str) -> str:
        """
        Strip markup and control sequences from one string.

        Tags are removed, ANSI escapes and control characters dropped,
        and any remaining HTML metacharacters escaped.
        """
        cleaned = _ANSI_RE.sub("", value)
        cleaned = _TAG_RE.sub("", cleaned)
        cleaned = _CONTROL_RE.sub("", cleaned)
        return html.escape(cleaned.strip(), quote=True)

    def sanitize(self, fields: Mapping[str, str]) -> dict[str, str]:
        """
        Sanitize every value of an externally supplied mapping.

        Never use this on key material: secrets go through KeyStore's
        strict decoder instead.

        Args:
            fields: Field name to raw string value.

        Returns:
            New dict with sanitized values; keys are sanitized too.
        """
        return {
            self.sanitize_value(str(key)): self.sanitize_value(str(value))
            for key, value in fields.items()
        }
