"""PokeAPI client: fetches one catalog subject and normalizes it to a round.

The client never retries; skipping bad ids is the refiller's job.
"""

import logging
from typing import Any

import httpx

from shared.cache import AsyncTTLCache, cached
from shared.errors import InvalidPayload, NotFound, UpstreamUnavailable
from shared.models.round import RoundRecord

logger = logging.getLogger(__name__)

POKEAPI_BASE = "https://pokeapi.co/api/v2"

# Catalog names hardly ever change
_names_cache = AsyncTTLCache(maxsize=4, ttl=3600)


def extract_image_ref(payload: dict[str, Any]) -> str | None:
    """Official artwork when present, otherwise the default front sprite."""
    sprites = payload.get("sprites")
    if not isinstance(sprites, dict):
        return None
    other = sprites.get("other")
    if isinstance(other, dict):
        artwork = other.get("official-artwork")
        if isinstance(artwork, dict) and artwork.get("front_default"):
            return str(artwork["front_default"])
    front = sprites.get("front_default")
    return str(front) if front else None


def to_round_record(pokemon_id: int, payload: Any) -> RoundRecord:
    """Validate a catalog payload and reduce it to the three fields we keep."""
    if not isinstance(payload, dict):
        raise InvalidPayload("Payload is not an object", pokemon_id=pokemon_id)

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise InvalidPayload("Payload has no name", pokemon_id=pokemon_id)

    image_ref = extract_image_ref(payload)
    if not image_ref:
        raise InvalidPayload(f"'{name}' has no usable image", pokemon_id=pokemon_id)

    external_id = payload.get("id")
    if not isinstance(external_id, int) or isinstance(external_id, bool) or external_id < 1:
        external_id = pokemon_id

    return RoundRecord(external_id=external_id, display_name=name.strip(), image_ref=image_ref)


class PokeAPIClient:
    """Client for the PokeAPI catalog.

    Manages a shared httpx client for connection reuse.
    """

    def __init__(
        self,
        base_url: str = POKEAPI_BASE,
        timeout: float = 10.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    async def _get_json(self, path: str, pokemon_id: int | None = None) -> Any:
        url = f"{self.base_url}/{path}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(
                f"GET {url} failed: {type(e).__name__}", pokemon_id=pokemon_id
            ) from e

        if response.status_code == 404:
            raise NotFound(f"No catalog entry at {url}", pokemon_id=pokemon_id)
        if response.status_code != 200:
            raise UpstreamUnavailable(
                f"GET {url} returned {response.status_code}", pokemon_id=pokemon_id
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidPayload(f"GET {url} returned invalid JSON", pokemon_id=pokemon_id) from e

    async def fetch(self, pokemon_id: int) -> RoundRecord:
        """Fetch one subject by id and normalize it.

        Raises NotFound, InvalidPayload or UpstreamUnavailable; never returns
        a partially populated record.
        """
        if isinstance(pokemon_id, bool) or not isinstance(pokemon_id, int) or pokemon_id < 1:
            raise ValueError(f"Catalog id must be a positive integer, got {pokemon_id!r}")

        payload = await self._get_json(f"pokemon/{pokemon_id}", pokemon_id)
        record = to_round_record(pokemon_id, payload)
        logger.debug(f"Fetched #{record.external_id} {record.display_name}")
        return record

    @cached(
        cache=_names_cache,
        key_func=lambda self, limit: f"names:{self.base_url}:{limit}",
        retry=2,
        retry_delay=0.5,
        retry_on=(UpstreamUnavailable,),
    )
    async def list_names(self, limit: int) -> list[str]:
        """Names of the first *limit* catalog entries, for guess autocompletion."""
        data = await self._get_json(f"pokemon?limit={limit}")
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise InvalidPayload("Catalog listing has no results")
        return [r["name"] for r in results if isinstance(r, dict) and r.get("name")]
