"""Data model for a playable guessing round."""

from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass(frozen=True)
class RoundRecord:
    """One playable round: a catalog subject plus the image to guess from."""

    external_id: int
    display_name: str
    image_ref: str

    def is_valid(self) -> bool:
        return self.external_id > 0 and bool(self.display_name) and bool(self.image_ref)

    def to_json(self) -> str:
        """Compact JSON form stored in the cache tier."""
        return json.dumps(
            {"id": self.external_id, "name": self.display_name, "image": self.image_ref},
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> RoundRecord:
        """Parse a cached record. Raises ValueError on malformed data."""
        try:
            data = json.loads(raw)
            record = cls(
                external_id=int(data["id"]),
                display_name=str(data["name"]),
                image_ref=str(data["image"]),
            )
        except (TypeError, KeyError, json.JSONDecodeError) as e:
            raise ValueError(f"Malformed round record: {raw!r}") from e
        if not record.is_valid():
            raise ValueError(f"Incomplete round record: {raw!r}")
        return record
