from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric

from configurator.core.database import Base


class CatalogOption(Base):
    __tablename__ = "product_options"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("product_groups.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    max_quantity = Column(Integer, default=1, nullable=False)
    price_increase = Column(Numeric(10, 2), default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
