import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flightpair.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "flightpair.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from flightpair.routers import itineraries

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: one shared catalog client for all searches
    from flightpair.services.amadeus_client import AmadeusFlightCatalog

    catalog = AmadeusFlightCatalog()
    app.state.flight_catalog = catalog
    if catalog.demo_mode:
        logger.warning("Amadeus credentials not configured — serving demo flight offers")

    engine = None
    if settings.itinerary_store_enabled:
        from flightpair.database import engine

        logger.info("Itinerary store enabled")

    yield

    # Shutdown
    await catalog.close()
    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")


app = FastAPI(
    title="FlightPair",
    description="Itinerary pairing and search over priced flight offers",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(itineraries.router, prefix="/api/v1/itineraries", tags=["itineraries"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "flightpair"}
