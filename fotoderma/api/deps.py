"""Request dependencies: the access gate and external collaborators."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool

from fotoderma.errors import UnauthorizedError
from fotoderma.logging_utils import set_doctor_context
from fotoderma.services.identity import (
    IdentityError,
    IdentityVerifier,
    Principal,
    TokenExpiredError,
    TokenRevokedError,
    build_identity_verifier,
)
from fotoderma.services.object_store import ObjectStore, build_object_store

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_identity_verifier() -> IdentityVerifier:
    return build_identity_verifier()


@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    return build_object_store()


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def unauthorized_from(exc: IdentityError) -> UnauthorizedError:
    """Translate a verifier failure without exposing verifier details."""

    if isinstance(exc, TokenExpiredError):
        return UnauthorizedError("Please login again", error="Token expired")
    if isinstance(exc, TokenRevokedError):
        return UnauthorizedError("Please login again", error="Token revoked")
    return UnauthorizedError("Invalid token")


def _attach(request: Request, principal: Principal) -> Principal:
    request.state.principal = principal
    set_doctor_context(principal.doctor_id)
    return principal


async def require_doctor(
    request: Request,
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Principal:
    """Resolve the bearer token or reject the request with 401.

    Runs on the event loop so the doctor bound to the logging context is
    visible to the handler; verification itself happens in the threadpool.
    """

    token = bearer_token(request)
    if token is None:
        raise UnauthorizedError("No token provided or invalid format")
    try:
        principal = await run_in_threadpool(verifier.verify, token)
    except IdentityError as exc:
        logger.info("token rejected", extra={"reason": exc.reason})
        raise unauthorized_from(exc) from exc
    return _attach(request, principal)


async def optional_doctor(
    request: Request,
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Principal | None:
    """Resolve the bearer token when possible; never fails the request."""

    request.state.principal = None
    token = bearer_token(request)
    if token is None:
        return None
    try:
        principal = await run_in_threadpool(verifier.verify, token)
    except IdentityError as exc:
        logger.debug("optional token ignored", extra={"reason": exc.reason})
        return None
    return _attach(request, principal)
