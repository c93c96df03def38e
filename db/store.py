# WORKFLOW: Store gateway for the prices table.
# Used by: Ingestion coordinator (replace snapshot), export encoder (filtered select)
# Functions:
# 1. PriceStore.transaction() - Unit of work; commit on success, roll back on any error
# 2. PriceStore.reset() - Remove every stored price
# 3. PriceStore.insert() - Insert one record; a uniqueness conflict reports False
# 4. PriceStore.select_statement() - Build the filtered, id-ordered export query
#
# Ingestion flow: transaction() -> reset() -> insert() per record (SAVEPOINT each) -> commit
# Any SQLAlchemy failure other than a uniqueness conflict surfaces as StoreError.

import logging
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from db.models import Price
from etl.errors import StoreError
from etl.tabular_decoder import PriceRecord

logger = logging.getLogger(__name__)


class PriceStore:
    """Persistence operations over one SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator["PriceStore"]:
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Store transaction failed, rolled back: {e}")
            raise StoreError(f"Database error: {e}") from e
        except Exception:
            self.session.rollback()
            raise

    def reset(self) -> int:
        try:
            result = self.session.execute(delete(Price))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to reset prices: {e}") from e
        logger.info(f"Removed {result.rowcount} stored prices")
        return result.rowcount

    def insert(self, record: PriceRecord) -> bool:
        """
        Insert one record inside a savepoint.

        Returns:
            True if the row was stored, False if it violated the uniqueness constraint
        """
        statement = insert(Price).values(
            name=record.name,
            category=record.category,
            price=record.price,
            create_date=record.date,
        )
        try:
            with self.session.begin_nested():
                self.session.execute(statement)
        except IntegrityError:
            logger.debug(f"Uniqueness conflict for {record}")
            return False
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to insert price: {e}") from e
        return True

    def select_statement(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
    ) -> Select:
        """Conjunction of the supplied bounds, ordered by insertion id."""
        statement = select(Price.name, Price.category, Price.price, Price.create_date)
        if start_date is not None:
            statement = statement.where(Price.create_date >= start_date)
        if end_date is not None:
            statement = statement.where(Price.create_date <= end_date)
        if min_price is not None:
            statement = statement.where(Price.price >= min_price)
        if max_price is not None:
            statement = statement.where(Price.price <= max_price)
        return statement.order_by(Price.id)

    def count(self) -> int:
        try:
            return self.session.execute(select(func.count()).select_from(Price)).scalar_one()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to count prices: {e}") from e
