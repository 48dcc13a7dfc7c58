"""Token verification against a locally generated RS256 key pair."""

import json
import time

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from fotoderma.services.identity import (
    InvalidTokenError,
    MockTokenVerifier,
    ProviderTokenVerifier,
    TokenExpiredError,
    TokenRevokedError,
)

PROJECT_ID = "fotoderma-test"
CERTS_URL = "https://certs.example.com/keys"


def _key_pair():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


PRIVATE_PEM, PUBLIC_PEM = _key_pair()


def _token(kid="k1", **overrides):
    now = int(time.time())
    claims = {
        "iss": f"https://securetoken.google.com/{PROJECT_ID}",
        "aud": PROJECT_ID,
        "sub": "doctor-a",
        "iat": now,
        "auth_time": now,
        "exp": now + 3600,
        "email": "ana@clinic.test",
        "name": "Dra. Ana",
        "picture": "https://img.test/ana.png",
    }
    claims.update(overrides)
    return jwt.encode(claims, PRIVATE_PEM, algorithm="RS256", headers={"kid": kid})


class Provider:
    """Serves signing keys and account lookups over ``httpx.MockTransport``."""

    def __init__(self):
        self.account = {"localId": "doctor-a", "validSince": "0"}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/keys":
            return httpx.Response(200, json={"k1": PUBLIC_PEM})
        if request.url.path.endswith("accounts:lookup"):
            assert request.url.params["key"] == "api-key"
            assert json.loads(request.content)["idToken"]
            return httpx.Response(200, json={"users": [self.account]})
        return httpx.Response(404)


@pytest.fixture
def provider():
    return Provider()


def _verifier(provider, **kwargs):
    return ProviderTokenVerifier(
        PROJECT_ID,
        certs_url=CERTS_URL,
        http_client=httpx.Client(transport=httpx.MockTransport(provider)),
        **kwargs,
    )


def test_valid_token(provider):
    principal = _verifier(provider).verify(_token())

    assert principal.doctor_id == "doctor-a"
    assert principal.email == "ana@clinic.test"
    assert principal.display_name == "Dra. Ana"
    assert principal.picture == "https://img.test/ana.png"


def test_expired_token(provider):
    past = int(time.time()) - 7200

    with pytest.raises(TokenExpiredError):
        _verifier(provider).verify(_token(iat=past, auth_time=past, exp=past + 60))


@pytest.mark.parametrize("token", [
    "not-a-jwt",
    _token(kid="unknown"),
    _token(aud="another-project"),
    _token(iss="https://evil.example.com"),
    _token(sub=""),
])
def test_rejected_tokens(provider, token):
    with pytest.raises(InvalidTokenError):
        _verifier(provider).verify(token)


def test_revocation_check_accepts_current_token(provider):
    verifier = _verifier(provider, api_key="api-key", check_revoked=True)

    assert verifier.verify(_token()).doctor_id == "doctor-a"
    assert any("accounts:lookup" in str(r.url) for r in provider.requests)


def test_token_issued_before_revocation(provider):
    provider.account["validSince"] = str(int(time.time()) + 60)
    verifier = _verifier(provider, api_key="api-key", check_revoked=True)

    with pytest.raises(TokenRevokedError):
        verifier.verify(_token())


def test_disabled_account(provider):
    provider.account["disabled"] = True
    verifier = _verifier(provider, api_key="api-key", check_revoked=True)

    with pytest.raises(TokenRevokedError):
        verifier.verify(_token())


def test_unconfigured_project_fails_loudly(provider):
    verifier = ProviderTokenVerifier(
        "", http_client=httpx.Client(transport=httpx.MockTransport(provider))
    )

    with pytest.raises(RuntimeError):
        verifier.verify(_token())


def test_mock_verifier():
    principal = MockTokenVerifier().verify("mock:dev-1:dev@clinic.test")

    assert principal.doctor_id == "dev-1"
    assert principal.email == "dev@clinic.test"
    with pytest.raises(InvalidTokenError):
        MockTokenVerifier().verify("mock:")
    with pytest.raises(InvalidTokenError):
        MockTokenVerifier().verify("Bearer x")
