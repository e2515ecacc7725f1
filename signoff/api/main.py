from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from signoff import __version__
from signoff.core.config import get_settings
from signoff.core.errors import SignoffError
from signoff.core.logger import configure_logging
from signoff.api.routers import approvals, signatures, health
from signoff.api.schemas.approval import ErrorResponse

settings = get_settings()
configure_logging(settings)

app = FastAPI(
    title=settings.app_name,
    description="Approval decisions gated on external electronic signatures",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


@app.exception_handler(SignoffError)
async def signoff_error_handler(request: Request, exc: SignoffError):
    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResponse(detail=exc.message, kind=exc.kind.value, retryable=exc.retryable).model_dump(),
    )


# Include routers
app.include_router(health.router)
app.include_router(approvals.router, prefix="/api")
app.include_router(signatures.router, prefix="/api")
