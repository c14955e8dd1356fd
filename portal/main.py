"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal.api.v1 import router as v1_router
from portal.api.v1.deps import http_error
from portal.core.config import settings
from portal.core.errors import PortalError

app = FastAPI(
    title="Secure Portal API",
    version="0.1.0",
    docs_url="/docs" if settings.APP_ENV == "dev" else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "X-Session-ID", "X-Token", "X-CSRF-Token"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Core failures raised outside a router's own mapping, e.g. an audit write that fails."""
    error = http_error(exc)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail}, headers=error.headers)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Secure Portal API"}
