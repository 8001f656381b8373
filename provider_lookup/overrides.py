"""Locally configured provider overrides.

Uses local_overrides.json, grouped per utility type then by county / ZIP:

    {"gas": {"county": {"Travis": "Texas Gas Service"},
             "zip": {"78664": "Atmos Energy"}}}

Loaded once at startup and read-only afterwards, so a single instance is
shared by every concurrent resolution.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union

logger = logging.getLogger(__name__)


def _freeze(table) -> Mapping[str, str]:
    if not isinstance(table, dict):
        return MappingProxyType({})
    return MappingProxyType({str(k): str(v) for k, v in table.items() if v})


@dataclass(frozen=True)
class UtilityOverrides:
    county: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    zip: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def find(self, county: Optional[str] = None, zip_code: Optional[str] = None) -> Optional[str]:
        """County match (case-insensitive) beats ZIP match (exact)."""
        if county:
            wanted = county.strip().lower()
            for key, provider in self.county.items():
                if key.lower() == wanted:
                    return provider
        if zip_code:
            return self.zip.get(str(zip_code).strip())
        return None


@dataclass(frozen=True)
class LocalOverrides:
    gas: UtilityOverrides = field(default_factory=UtilityOverrides)

    @classmethod
    def from_dict(cls, raw: dict) -> "LocalOverrides":
        gas = raw.get("gas") or {}
        return cls(gas=UtilityOverrides(
            county=_freeze(gas.get("county")),
            zip=_freeze(gas.get("zip")),
        ))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "LocalOverrides":
        path = Path(path)
        if not path.exists():
            logger.warning(f"Local overrides not found: {path}")
            return cls()
        try:
            with open(path) as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load local overrides {path}: {e}")
            return cls()
        if not isinstance(raw, dict):
            logger.warning(f"Local overrides {path}: expected a JSON object")
            return cls()

        overrides = cls.from_dict(raw)
        logger.info(
            f"Local overrides: gas={len(overrides.gas.county)} counties, "
            f"{len(overrides.gas.zip)} ZIPs"
        )
        return overrides
