from pydantic import BaseModel, ConfigDict, Field


class ImportStartedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Import started"
    job_id: str = Field(..., alias="jobId")


class JobStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    status: str
    total_records: int = Field(..., alias="totalRecords")
    processed: int
    progress: int = Field(..., ge=0, le=100)
    error_message: str | None = Field(None, alias="errorMessage")
