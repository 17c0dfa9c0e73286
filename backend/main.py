import logging
import os

from fastapi import FastAPI, Depends, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from db.session import engine
from db.base import Base

from models import import_jobs, sales, stock  # noqa: F401  (register tables)
from authentication.deps import get_current_user
from services.analytics_queries import AnalyticsQueryError
from services.ingestion import get_ingestion_service
from services.ingestion.errors import IngestionError

# --------------------------------------------------
# LOGGING
# --------------------------------------------------
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


# --------------------------------------------------
# APP
# --------------------------------------------------
app = FastAPI(
    title="Distribution Portal API",
    version="1.0.0",
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
    },
)

# --------------------------------------------------
# DB INIT
# --------------------------------------------------
@app.on_event("startup")
def _init_db():
    try:
        Base.metadata.create_all(bind=engine)
        with engine.begin() as conn:
            conn.execute(
                text(
                    """
                    CREATE INDEX IF NOT EXISTS ix_sales_date_product
                    ON sales (date, product_code)
                    """
                )
            )
            conn.execute(
                text(
                    """
                    CREATE INDEX IF NOT EXISTS ix_stock_date_product
                    ON stock (stock_date, product_code)
                    """
                )
            )
    except Exception:
        logger.exception("DB init failed")


@app.on_event("shutdown")
def _stop_runner():
    if get_ingestion_service.cache_info().currsize:
        get_ingestion_service().runner.shutdown(wait=False)


# --------------------------------------------------
# CORS
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.options("/{path:path}")
def preflight(path: str, request: Request):
    return Response(status_code=204)


# --------------------------------------------------
# ERRORS
# --------------------------------------------------
@app.exception_handler(IngestionError)
async def _ingestion_error(request: Request, exc: IngestionError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(AnalyticsQueryError)
async def _analytics_error(request: Request, exc: AnalyticsQueryError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# --------------------------------------------------
# ROUTERS
# --------------------------------------------------
from routers.imports import router as imports_router
from routers.analytics import router as analytics_router

app.include_router(imports_router)
app.include_router(analytics_router, dependencies=[Depends(get_current_user)])


# --------------------------------------------------
# HEALTH CHECK
# --------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/")
def root():
    return {"status": "ok"}
