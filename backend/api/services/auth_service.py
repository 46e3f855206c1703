"""Bearer token verification against the Cognito user pool.

Tokens are RS256 JWTs signed with one of the pool's published keys (JWKS).
The key set is fetched over HTTPS and cached; an unknown ``kid`` forces a
refetch in case the pool rotated its keys, at most once per
``JWKS_REFETCH_INTERVAL`` seconds.
"""

import logging
import time
from typing import Any

import httpx
import jwt

from shared.cache import AsyncTTLCache

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"
JWKS_TTL = 600
# Minimum seconds between refetches forced by an unknown kid
JWKS_REFETCH_INTERVAL = 30.0


class AuthService:
    """Verify identity-provider tokens and extract the player identity"""

    def __init__(
        self,
        issuer: str,
        jwks_url: str,
        *,
        audience: str | None = None,
        refetch_interval: float = JWKS_REFETCH_INTERVAL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not issuer or not jwks_url:
            raise ValueError("Token issuer and JWKS URL are required")

        self.issuer = issuer
        self.jwks_url = jwks_url
        self.audience = audience or None
        self._http = httpx.AsyncClient(timeout=5.0, transport=transport)
        self._jwks_cache = AsyncTTLCache(maxsize=1, ttl=JWKS_TTL)
        self.refetch_interval = refetch_interval
        self._last_fetch: float | None = None

    async def close(self) -> None:
        await self._http.aclose()

    async def _fetch_signing_keys(self) -> dict[str, Any]:
        response = await self._http.get(self.jwks_url)
        response.raise_for_status()
        keys: dict[str, Any] = {}
        for jwk in response.json().get("keys", []):
            kid = jwk.get("kid")
            if not kid:
                continue
            try:
                keys[kid] = jwt.PyJWK(jwk, algorithm=ALGORITHM).key
            except jwt.PyJWKError as e:
                logger.warning(f"Ignoring unusable signing key {kid}: {e}")
        logger.info(f"Loaded {len(keys)} signing key(s) from JWKS")
        return keys

    async def _load_signing_keys(self) -> dict[str, Any]:
        """Fetch the key set, falling back to the last good copy on failure."""
        self._last_fetch = time.monotonic()
        try:
            keys = await self._fetch_signing_keys()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch JWKS: {type(e).__name__}: {e}")
            stale = self._jwks_cache.get_stale(self.jwks_url)
            return stale if isinstance(stale, dict) else {}
        self._jwks_cache.set(self.jwks_url, keys)
        return keys

    async def _signing_key(self, kid: str) -> Any | None:
        keys = self._jwks_cache.get(self.jwks_url)
        if isinstance(keys, dict):
            key = keys.get(kid)
            if key is not None:
                return key
            # Unknown kid: refetch in case keys rotated, at most once per interval
            if (
                self._last_fetch is not None
                and time.monotonic() - self._last_fetch < self.refetch_interval
            ):
                return None
        return (await self._load_signing_keys()).get(kid)

    async def verify_token(self, token: str) -> dict | None:
        """Verify a bearer token and return its claims if valid"""
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Malformed token: {e}")
            return None

        kid = header.get("kid")
        if not kid:
            logger.warning("Token header missing kid")
            return None

        key = await self._signing_key(kid)
        if key is None:
            logger.warning(f"No signing key for kid {kid}")
            return None

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                audience=self.audience,
                options={"require": ["exp", "iss", "sub"], "verify_aud": self.audience is not None},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            return None

        return payload
