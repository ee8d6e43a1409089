"""FastAPI application."""

from fastapi import FastAPI

from backend.tripdesk.api.routes.health import router as health_router
from backend.tripdesk.api.routes.itinerary import router as itinerary_router
from backend.tripdesk.api.routes.metrics import router as metrics_router

app = FastAPI(title="Tripdesk Itinerary API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(itinerary_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Tripdesk Itinerary API", "version": "0.1.0"}
