import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chamados.api.v1.me import router as me_router
from chamados.calls.router import router as calls_router
from chamados.core.config import settings
from chamados.core.errors import ChamadosError
from chamados.db import models
from chamados.db.session import engine
from chamados.demands.router import router as demands_router
from chamados.reference.router import router as reference_router
from chamados.tracking.router import router as tracking_router

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("chamados")

API_PREFIX = "/v1/api"

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Gestao de demandas de RPA e apontamento de horas",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    models.Base.metadata.create_all(bind=engine)
    if settings.ENV.lower() == "production":
        if not settings.AZURE_AD_VERIFY_SIGNATURE:
            logger.warning("AZURE_AD_VERIFY_SIGNATURE desligado em producao.")
        if settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            logger.warning("SQLALCHEMY_DATABASE_URI aponta para SQLite em producao.")


app.include_router(me_router, prefix=API_PREFIX)
app.include_router(demands_router, prefix=API_PREFIX)
app.include_router(tracking_router, prefix=API_PREFIX)
app.include_router(reference_router, prefix=API_PREFIX)
app.include_router(calls_router, prefix=API_PREFIX)


def _error_body(request: Request, message: str, code: str, details=None) -> dict:
    return {
        "message": message,
        "code": code,
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details,
    }


@app.exception_handler(ChamadosError)
async def handle_chamados_error(request: Request, exc: ChamadosError):
    logger.warning(
        "request method=%s path=%s code=%s message=%s",
        request.method,
        request.url.path,
        exc.code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc.message, exc.code))


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=_error_body(request, "Dados invalidos", "VALIDATION_ERROR", details),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Erro inesperado em %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "Ocorreu um erro, tente novamente mais tarde", "INTERNAL_ERROR"),
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/health")
def health():
    return {"status": "ok"}
