from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import logging, uuid
import uvicorn

from .config import settings
from .errors import NotFoundError, PartialAggregationError, TransportError, ValidationError
from .logging_conf import configure_logging

configure_logging()
log = logging.getLogger(__name__)

app = FastAPI(title="Eye Examination Records")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.allow_origin] if settings.allow_origin != "*" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

app.add_middleware(RequestIdMiddleware)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": "Please fill all required fields", "kind": exc.kind, "errors": exc.errors},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc), "kind": exc.kind, "record_id": exc.record_id})


@app.exception_handler(PartialAggregationError)
async def partial_aggregation_handler(request: Request, exc: PartialAggregationError):
    return JSONResponse(status_code=502, content={"detail": str(exc), "missing_kinds": sorted(exc.failed_kinds)})


@app.exception_handler(TransportError)
async def transport_error_handler(request: Request, exc: TransportError):
    log.error(f"{request.method} {request.url.path}: backend error {exc.status_code}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc), "upstream_status": exc.status_code})


# Include routers
from .routes.records import router as records_router
from .routes.reports import router as reports_router
from .routes.orders import router as orders_router
app.include_router(records_router, prefix="/visits", tags=["records"])
app.include_router(reports_router, tags=["reports"])
app.include_router(orders_router, prefix="/orders", tags=["orders"])

@app.get("/")
def root():
    return {"ok": True, "service": "eyeexam", "backend": settings.emr_api_url}

@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "eyeexam", "version": "1.0.0"}


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
