"""FastAPI application for the FloodWatch river monitor."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from floodwatch import __version__
from floodwatch.api.dependencies import close_river_service
from floodwatch.api.responses import error_body, error_response, utc_timestamp
from floodwatch.api.routes import rivers, weather
from floodwatch.utils.config import config
from floodwatch.utils.exceptions import FloodWatchError, RateLimited

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Browser cache lifetimes per path prefix, in seconds
CACHE_MAX_AGE = {
    "/api/rivers/nearby": 120,
    "/api/weather/current": 120,
}
DEFAULT_MAX_AGE = 60


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting FloodWatch API...")
    yield
    close_river_service()


app = FastAPI(
    title="FloodWatch API",
    description="Live river levels, flood stages and flood-risk scores from USGS, NWPS and NOAA",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(rivers.router, prefix="/api")
app.include_router(weather.router, prefix="/api")


@app.exception_handler(FloodWatchError)
async def floodwatch_error_handler(request: Request, exc: FloodWatchError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.warning(f"{request.url.path} rejected: {exc.code} {exc.message}")

    response = error_response(exc)
    if isinstance(exc, RateLimited):
        response.headers["Retry-After"] = str(max(1, round(exc.retry_after)))
    return response


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=error_body("Internal server error"))


@app.middleware("http")
async def cache_control(request: Request, call_next):
    response = await call_next(request)
    path = request.url.path

    if path == "/api/health":
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    elif response.status_code == 200:
        max_age = next(
            (age for prefix, age in CACHE_MAX_AGE.items() if path.startswith(prefix)),
            DEFAULT_MAX_AGE,
        )
        response.headers["Cache-Control"] = f"public, max-age={max_age}"
    return response


@app.get("/api/health")
def health() -> dict:
    """Liveness check."""
    return {
        "status": "OK",
        "timestamp": utc_timestamp(),
        "version": __version__,
        "services": {"usgs": "operational", "noaa": "operational"},
    }


def main() -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "floodwatch.api.app:app",
        host=config.api.host,
        port=config.api.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
