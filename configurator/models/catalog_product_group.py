from sqlalchemy import Column, ForeignKey, Index, Integer

from configurator.core.database import Base


class CatalogProductGroup(Base):
    __tablename__ = "product_product_groups"
    __table_args__ = (
        Index(
            "ix_product_product_groups_product_group",
            "product_id",
            "group_id",
            unique=True,
        ),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    group_id = Column(Integer, ForeignKey("product_groups.id"), nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
