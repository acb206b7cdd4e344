from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import APP_ENV, DEV_MODE, UPLOAD_ROOT
from db import close_pools, open_pools
from errors import InvalidArgumentError, KaarigarError
from init_db import init_database
from utils import describe_validation_error, setup_upload_directories


# --- 1. Startup / shutdown ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    On startup: check/create the tables in all three databases, make sure the
    upload folders exist, and open one connection pool per database.
    On shutdown: close the pools.
    """
    init_database()
    setup_upload_directories()
    app.state.pools = await open_pools()
    try:
        yield
    finally:
        await close_pools(app.state.pools)


# --- 2. Application ---
app = FastAPI(title="Kaarigar", lifespan=lifespan)

# Uploaded profile pictures, e.g. <img src="/uploads/profiles/...">
app.mount("/uploads", StaticFiles(directory=UPLOAD_ROOT, check_dir=False), name="uploads")


# --- 3. Error responses ---
@app.exception_handler(KaarigarError)
async def handle_domain_error(request: Request, exc: KaarigarError):
    """
    Every domain error becomes {"success": false, "kind": ..., "message": ...}.
    The resolution trace is attached only in development (diagnostics, not API).
    """
    body = {"success": False, "kind": exc.kind, "message": exc.message}
    if DEV_MODE and exc.trace is not None:
        body["debug"] = exc.trace.as_dict()
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    """Form fields FastAPI could not parse (missing, wrong type) are InvalidArgument too."""
    error = InvalidArgumentError(describe_validation_error(exc.errors()))
    return await handle_domain_error(request, error)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    print(f"ERROR: unhandled error on {request.method} {request.url.path}: {exc!r}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "kind": "internal", "message": "Something went wrong"},
    )


# --- 4. Routers ---
from routes.auth import router as auth_router  # noqa: E402
from routes.conversations import router as conversations_router  # noqa: E402
from routes.tradesmen import router as tradesmen_router  # noqa: E402

app.include_router(auth_router, prefix="/api/auth")
app.include_router(tradesmen_router, prefix="/api/tradesmen")
app.include_router(conversations_router, prefix="/api/conversations")


# --- 5. Health ---
@app.get("/")
async def root():
    return {"success": True, "message": "Kaarigar API", "environment": APP_ENV}
