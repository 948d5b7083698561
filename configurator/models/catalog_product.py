from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String

from configurator.core.database import Base


class CatalogProduct(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), default=0, nullable=False)
    composition_type = Column(String(32), default="SIMPLE", nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
