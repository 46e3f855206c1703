"""Tests for bearer token verification."""

import asyncio
import json
import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from services.auth_service import AuthService

ISSUER = "https://cognito-idp.eu-west-1.amazonaws.com/eu-west-1_test"
JWKS_URL = f"{ISSUER}/.well-known/jwks.json"


@pytest.fixture(scope="module")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def jwks_for(private_key, kid="key-1"):
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return {"keys": [jwk]}


def make_token(private_key, kid="key-1", **overrides):
    claims = {
        "sub": "player-123",
        "iss": ISSUER,
        "exp": int(time.time()) + 300,
        "token_use": "id",
    }
    claims.update(overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": kid})


class JWKSEndpoint:
    """Serves a key set and counts requests."""

    def __init__(self, body, status=200):
        self.body = body
        self.status = status
        self.calls = 0

    def __call__(self, request):
        self.calls += 1
        assert str(request.url) == JWKS_URL
        return httpx.Response(self.status, json=self.body)


def verify(endpoint, *tokens, audience=None, **kwargs):
    async def run():
        service = AuthService(
            ISSUER,
            JWKS_URL,
            audience=audience,
            transport=httpx.MockTransport(endpoint),
            **kwargs,
        )
        try:
            return [await service.verify_token(token) for token in tokens]
        finally:
            await service.close()

    return asyncio.run(run())


class TestVerifyToken:
    """Tests for AuthService.verify_token."""

    def test_valid_token_returns_claims(self, signing_key):
        endpoint = JWKSEndpoint(jwks_for(signing_key))

        [claims] = verify(endpoint, make_token(signing_key))

        assert claims["sub"] == "player-123"
        assert claims["iss"] == ISSUER

    def test_key_set_is_cached(self, signing_key):
        endpoint = JWKSEndpoint(jwks_for(signing_key))
        token = make_token(signing_key)

        results = verify(endpoint, token, token, token)

        assert all(r is not None for r in results)
        assert endpoint.calls == 1

    def test_wrong_issuer_is_rejected(self, signing_key):
        endpoint = JWKSEndpoint(jwks_for(signing_key))
        token = make_token(signing_key, iss="https://evil.example")

        assert verify(endpoint, token) == [None]

    def test_expired_token_is_rejected(self, signing_key):
        endpoint = JWKSEndpoint(jwks_for(signing_key))
        token = make_token(signing_key, exp=int(time.time()) - 60)

        assert verify(endpoint, token) == [None]

    def test_missing_subject_is_rejected(self, signing_key):
        endpoint = JWKSEndpoint(jwks_for(signing_key))
        token = make_token(signing_key, sub=None)

        assert verify(endpoint, token) == [None]

    def test_token_signed_by_other_key_is_rejected(self, signing_key):
        endpoint = JWKSEndpoint(jwks_for(signing_key))
        impostor = rsa.generate_private_key(public_exponent=65537, key_size=2048)

        assert verify(endpoint, make_token(impostor)) == [None]

    def test_unknown_kid_refetches_once(self, signing_key):
        """A kid missing from the cached set triggers a refetch (key rotation)."""
        endpoint = JWKSEndpoint(jwks_for(signing_key))

        results = verify(
            endpoint,
            make_token(signing_key),
            make_token(signing_key, kid="rotated"),
            refetch_interval=0,
        )

        assert results[0] is not None
        assert results[1] is None
        assert endpoint.calls == 2

    def test_unknown_kid_refetch_is_rate_limited(self, signing_key):
        endpoint = JWKSEndpoint(jwks_for(signing_key))
        forged = [make_token(signing_key, kid=f"forged-{n}") for n in range(5)]

        results = verify(endpoint, make_token(signing_key), *forged)

        assert results[0] is not None
        assert results[1:] == [None] * 5
        assert endpoint.calls == 1

    def test_rotated_key_is_picked_up_after_interval(self, signing_key):
        rotated = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        endpoint = JWKSEndpoint(jwks_for(signing_key))

        async def run():
            service = AuthService(
                ISSUER, JWKS_URL, refetch_interval=30, transport=httpx.MockTransport(endpoint)
            )
            try:
                assert await service.verify_token(make_token(signing_key)) is not None
                endpoint.body = jwks_for(rotated, kid="key-2")
                token = make_token(rotated, kid="key-2")
                early = await service.verify_token(token)
                service._last_fetch -= 31
                late = await service.verify_token(token)
                return early, late
            finally:
                await service.close()

        early, late = asyncio.run(run())
        assert early is None
        assert late is not None
        assert endpoint.calls == 2

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_token_is_rejected(self, signing_key, token):
        endpoint = JWKSEndpoint(jwks_for(signing_key))

        assert verify(endpoint, token) == [None]
        assert endpoint.calls == 0

    def test_audience_checked_when_configured(self, signing_key):
        endpoint = JWKSEndpoint(jwks_for(signing_key))
        good = make_token(signing_key, aud="client-abc")
        bad = make_token(signing_key, aud="someone-else")

        assert verify(endpoint, good, bad, audience="client-abc") == [
            jwt.decode(good, options={"verify_signature": False}),
            None,
        ]

    def test_jwks_outage_rejects_instead_of_raising(self, signing_key):
        endpoint = JWKSEndpoint({"message": "unavailable"}, status=503)

        assert verify(endpoint, make_token(signing_key)) == [None]

    def test_requires_issuer_and_jwks_url(self):
        with pytest.raises(ValueError):
            AuthService("", JWKS_URL)
