from sqlalchemy import Column, DateTime, Float, Integer, String, func

from db.base import Base


class SalesRecord(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime, nullable=False, index=True)
    division = Column(String, index=True)
    depot = Column(String, index=True)
    seller = Column(String)
    db_code = Column(String)
    db_name = Column(String)
    prod_line = Column(String)
    category = Column(String)
    brand = Column(String, index=True)
    product_code = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    emp_id = Column(String)
    employee_name = Column(String)
    qty_pc = Column(Integer, nullable=False, default=0)
    qty_ltr_kg = Column(Float, nullable=False, default=0)
    dp_value = Column(Float, nullable=False, default=0)
    tp_value = Column(Float, nullable=False, default=0)
    hash = Column(String(32), nullable=False, unique=True)  # dedup key, see services/ingestion/hasher.py
    imported_by = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
