"""Utility Provider Lookup: geocode an address, then ask each provider's own data source who serves it."""

from .engine import LookupEngine
from .models import Location, ProviderResult, ResolutionError, ResolutionResult

__all__ = ["LookupEngine", "Location", "ProviderResult", "ResolutionError", "ResolutionResult"]
