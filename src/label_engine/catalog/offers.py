"""License offers attached to a beat.

An offer is what a buyer picks at checkout: a priced bundle of file formats
sold under one of the license tiers. Offers are stored as JSON on the beat
row and rebuilt into ``LicenseOffer`` values when read.
"""

from dataclasses import dataclass, field
from typing import Any

VALID_FORMATS = ("MP3", "WAV", "STEMS")


@dataclass(frozen=True)
class LicenseOffer:
    id: str
    name: str
    price: float
    tier: str
    formats: frozenset[str]
    files: dict[str, str]
    description: str = ""
    terms: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Offer id is required")
        if self.price < 0:
            raise ValueError(f"Offer {self.id}: price must be non-negative")
        if not self.formats:
            raise ValueError(f"Offer {self.id}: at least one format is required")

        unknown = set(self.formats) - set(VALID_FORMATS)
        if unknown:
            raise ValueError(
                f"Offer {self.id}: unknown formats {sorted(unknown)}; "
                f"expected a subset of {list(VALID_FORMATS)}"
            )

        missing = [fmt for fmt in VALID_FORMATS if fmt in self.formats and not self.files.get(fmt)]
        if missing:
            raise ValueError(f"Offer {self.id}: no file URL for formats {missing}")

    def delivered_files(self) -> dict[str, str]:
        """Format to URL for every format the buyer paid for, in display order."""
        return {fmt: self.files[fmt] for fmt in VALID_FORMATS if fmt in self.formats}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "tier": self.tier,
            "description": self.description,
            "formats": [fmt for fmt in VALID_FORMATS if fmt in self.formats],
            "files": dict(self.files),
            "terms": dict(self.terms),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LicenseOffer":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            price=float(data.get("price", 0)),
            tier=data.get("tier", "Basic"),
            description=data.get("description", ""),
            formats=frozenset(fmt.upper() for fmt in data.get("formats", [])),
            files={k.upper(): v for k, v in (data.get("files") or {}).items()},
            terms=dict(data.get("terms") or {}),
        )
