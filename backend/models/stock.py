from sqlalchemy import Column, DateTime, Float, Integer, String, func

from db.base import Base


class StockRecord(Base):
    __tablename__ = "stock"

    id = Column(Integer, primary_key=True, index=True)
    division = Column(String, index=True)
    site_name = Column(String, index=True)
    dist_code = Column(String)
    source = Column(String)
    party_name = Column(String)
    group = Column(String)
    category = Column(String)
    brand = Column(String, index=True)
    product_code = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    batch_name = Column(String)
    qty = Column(Integer, nullable=False, default=0)
    retailer_price = Column(Float, nullable=False, default=0)
    dealer_price = Column(Float, nullable=False, default=0)
    ltr_kg = Column(Float, nullable=False, default=0)
    retailer_amount = Column(Float, nullable=False, default=0)
    dealer_amount = Column(Float, nullable=False, default=0)
    stock_date = Column(DateTime, nullable=False, index=True)
    hash = Column(String(32), nullable=False, unique=True)
    imported_by = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
