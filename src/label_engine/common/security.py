"""Identity-token verification and role dependencies.

Tokens are issued by the external identity provider. We only verify the
signature and standard claims, then read the subject, email and roles.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from label_engine.common.config import LabelSettings
from label_engine.common.exceptions import ForbiddenError, UnauthenticatedError


@dataclass
class Identity:
    """Verified caller identity available to request handlers."""
    subject: str
    email: Optional[str] = None
    roles: list[str] = field(default_factory=list)

    def has_any_role(self, roles: list[str]) -> bool:
        return any(role in self.roles for role in roles)


class IdentityVerifier:
    """Verifies bearer tokens with PyJWT (RS256 via JWKS, or HS256 shared secret)."""

    def __init__(self, settings: LabelSettings):
        self.settings = settings
        self._jwks_client = (
            jwt.PyJWKClient(settings.identity_jwks_url, cache_keys=True)
            if settings.identity_jwks_url
            else None
        )

    def decode(self, token: str) -> dict[str, Any]:
        if self._jwks_client is not None:
            key = self._jwks_client.get_signing_key_from_jwt(token).key
            algorithms = ["RS256"]
        else:
            key = self.settings.identity_secret
            algorithms = ["HS256"]

        return jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience=self.settings.identity_audience or None,
            issuer=self.settings.identity_issuer or None,
            options={"verify_aud": bool(self.settings.identity_audience)},
        )

    def verify(self, token: str) -> Identity:
        try:
            claims = self.decode(token)
        except jwt.PyJWTError as exc:
            raise UnauthenticatedError(f"Invalid token: {exc}") from exc

        subject = claims.get("sub")
        if not subject:
            raise UnauthenticatedError("Token has no subject")

        roles = claims.get(self.settings.identity_roles_claim) or claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        # Permission-style admin grant used by the storefront's API audience
        if "admin:all" in (claims.get("permissions") or []):
            roles = [*roles, "admin"]

        return Identity(subject=subject, email=claims.get("email"), roles=list(roles))


_bearer = HTTPBearer(auto_error=False)


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Identity:
    """FastAPI dependency resolving the caller from the Authorization header."""
    if credentials is None:
        raise UnauthenticatedError()

    from label_engine.deps import get_identity_verifier

    # A JWKS cache miss fetches keys over blocking HTTP
    return await run_in_threadpool(get_identity_verifier().verify, credentials.credentials)


async def require_staff(identity: Identity = Depends(get_identity)) -> Identity:
    """FastAPI dependency for door staff and admins."""
    from label_engine.common.config import get_settings

    if not identity.has_any_role(get_settings().staff_roles):
        raise ForbiddenError("Staff or admin role required")
    return identity


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """FastAPI dependency for admins only."""
    from label_engine.common.config import get_settings

    if not identity.has_any_role(get_settings().admin_roles):
        raise ForbiddenError("Admin role required")
    return identity
