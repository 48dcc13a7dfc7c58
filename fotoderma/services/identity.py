"""Verification of identity-provider ID tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from jose import ExpiredSignatureError, JWTError, jwt

from fotoderma.core.config import settings

logger = logging.getLogger(__name__)

_ISSUER_TEMPLATE = "https://securetoken.google.com/{project_id}"
_LOOKUP_URL = "https://identitytoolkit.googleapis.com/v1/accounts:lookup"


@dataclass(frozen=True)
class Principal:
    """Authenticated doctor resolved from a bearer token."""

    doctor_id: str
    email: str = ""
    display_name: str = ""
    picture: str = ""

    def as_dict(self) -> dict[str, str]:
        return {
            "doctorId": self.doctor_id,
            "email": self.email,
            "displayName": self.display_name,
        }


class IdentityError(Exception):
    """Token rejected by the verifier."""

    reason = "invalid"


class InvalidTokenError(IdentityError):
    reason = "invalid"


class TokenExpiredError(IdentityError):
    reason = "expired"


class TokenRevokedError(IdentityError):
    reason = "revoked"


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> Principal: ...


class ProviderTokenVerifier:
    """Verify RS256 ID tokens issued by the hosted identity provider.

    Signing certificates are fetched from ``certs_url`` on every call; the
    optional revocation check looks the account up through the provider's REST
    API and rejects tokens issued before ``validSince``.
    """

    def __init__(
        self,
        project_id: str,
        *,
        api_key: str = "",
        check_revoked: bool = False,
        certs_url: str = settings.identity_certs_url,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.project_id = project_id
        self.api_key = api_key
        self.check_revoked = check_revoked
        self.certs_url = certs_url
        self._client = http_client or httpx.Client(
            timeout=settings.identity_timeout_seconds
        )

    def _signing_keys(self) -> dict[str, str]:
        response = self._client.get(self.certs_url)
        response.raise_for_status()
        return response.json()

    def _decode(self, token: str) -> dict[str, Any]:
        if not self.project_id:
            raise RuntimeError("IDENTITY_PROJECT_ID is not configured")
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise InvalidTokenError("Malformed token") from exc

        key = self._signing_keys().get(header.get("kid", ""))
        if key is None:
            raise InvalidTokenError("Unknown signing key")

        try:
            return jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=_ISSUER_TEMPLATE.format(project_id=self.project_id),
                options={"verify_at_hash": False},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token expired") from exc
        except JWTError as exc:
            raise InvalidTokenError("Token rejected") from exc

    def _ensure_not_revoked(self, token: str, claims: dict[str, Any]) -> None:
        if not self.api_key:
            raise RuntimeError("IDENTITY_API_KEY is required for revocation checks")
        response = self._client.post(
            _LOOKUP_URL, params={"key": self.api_key}, json={"idToken": token}
        )
        response.raise_for_status()
        users = response.json().get("users") or []
        if not users:
            raise InvalidTokenError("Unknown account")
        account = users[0]
        if account.get("disabled"):
            raise TokenRevokedError("Account disabled")
        valid_since = int(account.get("validSince") or 0)
        if int(claims.get("auth_time", 0)) < valid_since:
            raise TokenRevokedError("Token revoked")

    def verify(self, token: str) -> Principal:
        claims = self._decode(token)
        subject = claims.get("sub")
        if not subject:
            raise InvalidTokenError("Token has no subject")
        if self.check_revoked:
            self._ensure_not_revoked(token, claims)
        return Principal(
            doctor_id=subject,
            email=claims.get("email") or "",
            display_name=claims.get("name") or "",
            picture=claims.get("picture") or "",
        )


class MockTokenVerifier:
    """Accept ``mock:<uid>[:<email>]`` tokens for local development."""

    def verify(self, token: str) -> Principal:
        prefix, _, rest = token.partition(":")
        if prefix != "mock" or not rest:
            raise InvalidTokenError("Not a mock token")
        uid, _, email = rest.partition(":")
        logger.debug("Accepted mock identity token for %s", uid)
        return Principal(doctor_id=uid, email=email, display_name=uid)


def build_identity_verifier() -> IdentityVerifier:
    """Return the verifier selected by application settings."""

    if settings.identity_mock_mode:
        return MockTokenVerifier()
    return ProviderTokenVerifier(
        settings.identity_project_id,
        api_key=settings.identity_api_key,
        check_revoked=settings.identity_check_revoked,
    )
