"""
FastAPI server for the Utility Provider Lookup engine.

Builds the engine (overrides + cache) once on startup, then answers
GET /api/v1/providers?address=... with electric, water, gas and trash
providers for the address.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from provider_lookup.config import Config
from provider_lookup.engine import LookupEngine
from provider_lookup.models import ResolutionError

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("api")

# ---------------------------------------------------------------------------
# Global engine (built once at startup)
# ---------------------------------------------------------------------------
engine: Optional[LookupEngine] = None


def load_env_file(env_path: Path):
    """Load KEY=VALUE lines from a .env file without overriding the real environment."""
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, val = line.split("=", 1)
            os.environ.setdefault(key.strip(), val.strip())


def config_from_env() -> Config:
    config = Config()
    if os.environ.get("NOMINATIM_USER_AGENT"):
        config.nominatim_user_agent = os.environ["NOMINATIM_USER_AGENT"]
    if os.environ.get("NOMINATIM_EMAIL"):
        config.nominatim_email = os.environ["NOMINATIM_EMAIL"]
    if os.environ.get("PROVIDER_CACHE_DB"):
        config.cache_db = Path(os.environ["PROVIDER_CACHE_DB"])
    if os.environ.get("PROVIDER_CACHE_TTL"):
        config.cache_ttl_seconds = int(os.environ["PROVIDER_CACHE_TTL"])
    if os.environ.get("RESOLUTION_TIMEOUT"):
        config.resolution_timeout = float(os.environ["RESOLUTION_TIMEOUT"])
    return config


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine on startup, close the cache on shutdown."""
    global engine
    t0 = time.time()

    load_env_file(Path(__file__).parent / ".env")
    engine = LookupEngine(config_from_env())

    logger.info(f"Engine ready in {time.time() - t0:.1f}s")

    yield

    if engine:
        engine.cache.close()
    logger.info("Shutdown complete.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Utility Provider Lookup API",
    description="Look up electric, water, gas and trash providers for an Austin-area address.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------
class NextActionResponse(BaseModel):
    label: str
    url: Optional[str] = None
    kind: str


class ProviderResponse(BaseModel):
    provider: Optional[str] = None
    source: str
    confidence: str
    status_text: Optional[str] = None
    next_actions: List[NextActionResponse] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)


class LocationResponse(BaseModel):
    lat: float
    lng: float
    display_name: str


class ProvidersResponse(BaseModel):
    electric: ProviderResponse
    water: ProviderResponse
    gas: ProviderResponse
    trash: ProviderResponse


class ResolveResponse(BaseModel):
    address: str
    location: LocationResponse
    providers: ProvidersResponse


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    engine_loaded: bool
    cache_entries: int
    uptime_seconds: float


_start_time = time.time()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="ok" if engine else "loading",
        engine_loaded=engine is not None,
        cache_entries=engine.cache.size if engine else 0,
        uptime_seconds=round(time.time() - _start_time, 1),
    )


@app.get(
    "/api/v1/providers",
    response_model=ResolveResponse,
    responses={422: {"model": ErrorResponse}},
)
def providers(
    address: Optional[str] = Query(None, description="Street address to resolve"),
):
    """
    Resolve utility providers for an address.

    Blank address and geocoding failure both answer 422 with {"error": ...}.
    Individual provider outages do not fail the request; that provider is
    returned with confidence "unknown" and the failure in meta.error.
    """
    if not engine:
        raise HTTPException(status_code=503, detail="Engine is still loading. Try again shortly.")

    try:
        outcome = engine.resolve(address or "")
    except Exception as e:
        logger.error(f"Resolve error for '{address}': {e}")
        raise HTTPException(status_code=500, detail=f"Lookup failed: {str(e)}")

    if isinstance(outcome, ResolutionError):
        return JSONResponse(status_code=422, content={"error": outcome.message})

    return outcome.to_dict()
