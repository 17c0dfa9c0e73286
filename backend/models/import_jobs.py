import enum
import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from db.base import Base


class RecordType(str, enum.Enum):
    SALES = "SALES"
    STOCK = "STOCK"


class JobStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED.value, JobStatus.FAILED.value})


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String(16), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=JobStatus.PROCESSING.value, index=True)
    total_records = Column(Integer, nullable=False, default=0)
    processed = Column(Integer, nullable=False, default=0)
    progress = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    created_by = Column(String)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
