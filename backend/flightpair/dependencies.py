from fastapi import HTTPException, Request

from flightpair.services.flight_catalog import FlightCatalog


def get_flight_catalog(request: Request) -> FlightCatalog:
    """Catalog created at application startup (see main.lifespan)."""
    catalog = getattr(request.app.state, "flight_catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Flight catalog not initialised")
    return catalog
