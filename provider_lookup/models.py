"""Data models for the provider lookup engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Confidence(str, Enum):
    CONFIRMED = "confirmed"  # direct authoritative spatial hit
    LIKELY = "likely"        # secondary layer, derived name, or override
    UNKNOWN = "unknown"      # no usable match


class ActionKind(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ErrorKind(str, Enum):
    MISSING_ADDRESS = "missing_address"
    GEOCODE_FAILED = "geocode_failed"


UTILITY_TYPES = ("electric", "water", "gas", "trash")


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    display_name: str = ""

    def to_dict(self) -> dict:
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "display_name": self.display_name,
        }


@dataclass(frozen=True)
class AdministrativeComponents:
    city: Optional[str] = None
    county: Optional[str] = None
    zip_code: Optional[str] = None


@dataclass(frozen=True)
class ProviderRequest:
    """Everything a provider client may need for one lookup."""
    lat: float
    lng: float
    city: Optional[str] = None
    county: Optional[str] = None
    zip_code: Optional[str] = None


@dataclass
class NextAction:
    label: str
    url: Optional[str] = None  # None = action exists, link not known yet
    kind: ActionKind = ActionKind.SECONDARY

    def to_dict(self) -> dict:
        return {"label": self.label, "url": self.url, "kind": self.kind.value}


@dataclass
class ProviderResult:
    provider: Optional[str]
    source: str
    confidence: Confidence = Confidence.UNKNOWN
    status_text: Optional[str] = None
    next_actions: List[NextAction] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def unknown(cls, source: str, error: Optional[str] = None) -> "ProviderResult":
        meta = {"error": error} if error else {}
        return cls(provider=None, source=source, meta=meta)

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "source": self.source,
            "confidence": self.confidence.value,
            "status_text": self.status_text,
            "next_actions": [a.to_dict() for a in self.next_actions],
            "meta": self.meta,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProviderResult":
        return cls(
            provider=data.get("provider"),
            source=data.get("source", ""),
            confidence=Confidence(data.get("confidence", "unknown")),
            status_text=data.get("status_text"),
            next_actions=[
                NextAction(
                    label=a.get("label", ""),
                    url=a.get("url"),
                    kind=ActionKind(a.get("kind", "secondary")),
                )
                for a in data.get("next_actions", [])
            ],
            meta=data.get("meta") or {},
        )


@dataclass
class ResolutionResult:
    address: str
    location: Location
    electric: ProviderResult
    water: ProviderResult
    gas: ProviderResult
    trash: ProviderResult

    @property
    def providers(self) -> Dict[str, ProviderResult]:
        return {utype: getattr(self, utype) for utype in UTILITY_TYPES}

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "location": self.location.to_dict(),
            "providers": {k: v.to_dict() for k, v in self.providers.items()},
        }


@dataclass(frozen=True)
class ResolutionError:
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind.value}


Resolution = Union[ResolutionResult, ResolutionError]


def resolution_from_dict(data: dict) -> Resolution:
    """Rebuild a cached resolution outcome from its serialized form."""
    if "error" in data:
        return ResolutionError(kind=ErrorKind(data["kind"]), message=data["error"])
    loc = data["location"]
    providers = data.get("providers", {})
    return ResolutionResult(
        address=data.get("address", ""),
        location=Location(
            latitude=loc.get("lat", 0.0),
            longitude=loc.get("lng", 0.0),
            display_name=loc.get("display_name", ""),
        ),
        **{utype: ProviderResult.from_dict(providers.get(utype, {})) for utype in UTILITY_TYPES},
    )
