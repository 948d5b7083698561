from sqlalchemy import Boolean, Column, Integer, String, Text

from configurator.core.database import Base


class CatalogGroup(Base):
    __tablename__ = "product_groups"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    min_quantity = Column(Integer, default=0, nullable=False)
    max_quantity = Column(Integer, default=1, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
