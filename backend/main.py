import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
import uvicorn
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings
from core.errors import LedgerError, MalformedRequest, StoreUnavailable, Unauthenticated
from db.database import create_db_and_tables
from routers.auth import router as auth_router
from routers.deliveries import router as deliveries_router
from routers.pages import router as pages_router
from routers.records import router as records_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.store_backend != "memory":
        await create_db_and_tables()
    yield


app = FastAPI(
    title="Water Delivery Ledger API",
    description="Bottled-water deliveries and the empty-bucket balance",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.middleware("http")
async def cors_headers(request: Request, call_next):
    # Outside CORSMiddleware: every OPTIONS gets 200, every response the CORS headers
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    response = await call_next(request)
    for name, value in CORS_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# ---- error mapping ---------------------------------------------------------

def _describe_validation_error(e: dict) -> str:
    loc = ".".join(str(p) for p in e.get("loc", ()) if p != "body")
    msg = e.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


@app.exception_handler(Unauthenticated)
async def unauthenticated_handler(request: Request, exc: Unauthenticated):
    return JSONResponse({"success": False, "error": exc.message}, status_code=401, headers=CORS_HEADERS)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    return PlainTextResponse(f"Error: {exc.message}", status_code=500, headers=CORS_HEADERS)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    # NegativeQuantity, InsufficientEmptyBuckets, MalformedRequest
    return JSONResponse({"error": exc.message}, status_code=400, headers=CORS_HEADERS)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    detail = "; ".join(_describe_validation_error(e) for e in exc.errors())
    err = MalformedRequest(f"Malformed request: {detail or 'invalid body'}")
    return JSONResponse({"error": err.message}, status_code=400, headers=CORS_HEADERS)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # unknown path or unsupported method on a known path
    if exc.status_code in (404, 405):
        return PlainTextResponse("Not Found", status_code=404, headers=CORS_HEADERS)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=CORS_HEADERS)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return PlainTextResponse(f"Error: {exc}", status_code=500, headers=CORS_HEADERS)


# ---- routes ----------------------------------------------------------------

app.include_router(deliveries_router, prefix="/api", tags=["deliveries"])
app.include_router(records_router, prefix="/api", tags=["records"])
app.include_router(auth_router, prefix="/api", tags=["auth"])
app.include_router(pages_router, tags=["pages"])


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
