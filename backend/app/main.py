"""FastAPI application - itinerary chat and plan mutation service."""

from fastapi import FastAPI

from backend.app.api.routes.booking import router as booking_router
from backend.app.api.routes.chat import router as chat_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router

app = FastAPI(title="Itinerary Chat API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(chat_router, tags=["chat"])
app.include_router(booking_router, tags=["booking"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Itinerary Chat API", "version": "0.1.0"}
