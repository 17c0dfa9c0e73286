# routers/imports.py

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from authentication.deps import CurrentUser, get_current_user, require_permission
from models.import_jobs import RecordType
from models.job_schemas import ImportStartedResponse, JobStatusResponse
from services.ingestion import get_ingestion_service
from services.ingestion.engine import IngestionService
from services.ingestion.errors import IngestionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["imports"])


async def _start_import(
    file: UploadFile | None,
    record_type: RecordType,
    user: CurrentUser,
    service: IngestionService,
):
    if file is None:
        return JSONResponse(status_code=400, content={"error": "No file uploaded"})

    contents = await file.read()
    if not contents:
        return JSONResponse(status_code=400, content={"error": "No file uploaded"})

    try:
        job_id = service.start(contents, file.filename, record_type, actor=user.user_id)
    except IngestionError:
        raise
    except Exception as exc:
        logger.exception("%s import failed to start", record_type.value.title())
        return JSONResponse(
            status_code=500,
            content={"error": str(exc) or "Failed to initiate import"},
        )

    return ImportStartedResponse(job_id=job_id)


@router.post("/sales/import", response_model=ImportStartedResponse)
async def import_sales(
    file: UploadFile | None = File(None),
    user: CurrentUser = Depends(require_permission("import_sales")),
    service: IngestionService = Depends(get_ingestion_service),
):
    return await _start_import(file, RecordType.SALES, user, service)


@router.post("/stock/import", response_model=ImportStartedResponse)
async def import_stock(
    file: UploadFile | None = File(None),
    user: CurrentUser = Depends(require_permission("import_stock")),
    service: IngestionService = Depends(get_ingestion_service),
):
    return await _start_import(file, RecordType.STOCK, user, service)


@router.get("/jobs/status/{job_id}", response_model=JobStatusResponse)
def job_status(
    job_id: str,
    _: CurrentUser = Depends(get_current_user),
    service: IngestionService = Depends(get_ingestion_service),
):
    snapshot = service.tracker.get(job_id)
    return JobStatusResponse(
        id=snapshot.id,
        type=snapshot.type,
        status=snapshot.status,
        total_records=snapshot.total_records,
        processed=snapshot.processed,
        progress=snapshot.progress,
        error_message=snapshot.error_message,
    )
