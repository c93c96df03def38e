# WORKFLOW: Database model for stored price records.
# Used by: Store gateway, schema initialization, export queries
# Models represent:
# 1. prices - one row per ingested, validated, non-duplicate price record
#
# Data flow: Archive -> Tabular decoder -> Deduplicator -> prices table -> Export archive

from sqlalchemy import Column, Date, Index, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

from etl.validators import PRICE_PRECISION, PRICE_SCALE

Base = declarative_base()


class Price(Base):
    __tablename__ = "prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    price = Column(Numeric(PRICE_PRECISION, PRICE_SCALE), nullable=False)
    create_date = Column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint('name', 'category', 'price', 'create_date', name='uq_prices_identity'),
        Index('idx_prices_create_date', 'create_date'),
        Index('idx_prices_price', 'price'),
    )

    def __repr__(self) -> str:
        return f"<Price id={self.id} name={self.name!r} category={self.category!r} price={self.price}>"
