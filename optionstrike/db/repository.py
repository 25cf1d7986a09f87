"""
Persistence for recommendations and the fetched-data archive tables.
"""

from __future__ import annotations
from typing import Callable, Iterable, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from optionstrike.db.models import EarningsCalendarRecord, OptionsDataRecord, RecommendationRecord
from optionstrike.models.earnings import EarningsEvent
from optionstrike.models.option import OptionsChain
from optionstrike.models.recommendation import Recommendation
from optionstrike.utils.error_handling import PersistenceError
from optionstrike.utils.timestamp import parse_date

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_LIMIT = 30


def _record_to_recommendation(record: RecommendationRecord) -> Recommendation:
    return Recommendation.from_dict({
        "id": record.id,
        "symbol": record.symbol,
        "strike_price": record.strike_price,
        "expiration_date": record.expiration_date.isoformat(),
        "premium": record.premium,
        "confidence_score": record.confidence_score,
        "pop": record.pop,
        "delta": record.delta,
        "implied_volatility": record.implied_volatility,
        "premium_percentage": record.premium_percentage,
        "max_loss": record.max_loss,
        "breakeven": record.breakeven,
        "earnings_date": record.earnings_date.isoformat() if record.earnings_date else None,
        "volume": record.volume,
        "open_interest": record.open_interest,
        "stock_price": record.stock_price,
        "eps_growth": record.eps_growth,
        "created_at": record.created_at,
        "is_active": record.is_active,
    })


def _recommendation_to_record(rec: Recommendation) -> RecommendationRecord:
    return RecommendationRecord(
        symbol=rec.symbol,
        strike_price=rec.strike_price,
        expiration_date=parse_date(rec.expiration_date),
        premium=rec.premium,
        confidence_score=rec.confidence_score,
        pop=rec.pop,
        delta=rec.delta,
        implied_volatility=rec.implied_volatility,
        premium_percentage=rec.premium_percentage,
        max_loss=rec.max_loss,
        breakeven=rec.breakeven,
        earnings_date=parse_date(rec.earnings_date) if rec.earnings_date else None,
        volume=rec.volume,
        open_interest=rec.open_interest,
        stock_price=rec.stock_price,
        eps_growth=rec.eps_growth,
        created_at=rec.created_at,
        is_active=True,
    )


class RecommendationRepository:
    """
    Reads and writes the recommendations table.

    The pipeline is the only writer. A write replaces the whole active
    generation inside one transaction, so readers see either the old set or
    the new set, never an empty table in between.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get_active(self, limit: int = DEFAULT_ACTIVE_LIMIT) -> List[Recommendation]:
        session = self._session_factory()
        try:
            records = (
                session.query(RecommendationRecord)
                .filter(RecommendationRecord.is_active.is_(True))
                .order_by(RecommendationRecord.confidence_score.desc())
                .limit(limit)
                .all()
            )
            return [_record_to_recommendation(r) for r in records]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read active recommendations: {e}") from e
        finally:
            session.close()

    def replace_active(self, recommendations: Iterable[Recommendation]) -> int:
        """
        Deactivate the current generation and insert a new one atomically.

        Raises:
            PersistenceError: the transaction was rolled back and the previous
                generation is still active.
        """
        recommendations = list(recommendations)
        session = self._session_factory()
        try:
            deactivated = (
                session.query(RecommendationRecord)
                .filter(RecommendationRecord.is_active.is_(True))
                .update({RecommendationRecord.is_active: False}, synchronize_session=False)
            )
            records = [_recommendation_to_record(r) for r in recommendations]
            session.add_all(records)
            session.commit()
        except (SQLAlchemyError, ValueError) as e:
            session.rollback()
            logger.error(f"[Repository] Error saving recommendations, rolled back: {e}")
            raise PersistenceError(f"Failed to save recommendations: {e}") from e
        finally:
            session.close()

        for rec, record in zip(recommendations, records):
            rec.id = record.id
            rec.is_active = True

        logger.info(
            f"[Repository] Saved {len(records)} recommendations "
            f"(deactivated {deactivated} previous)"
        )
        return len(records)

    def deactivate_all(self) -> int:
        session = self._session_factory()
        try:
            count = (
                session.query(RecommendationRecord)
                .filter(RecommendationRecord.is_active.is_(True))
                .update({RecommendationRecord.is_active: False}, synchronize_session=False)
            )
            session.commit()
            return count
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Failed to deactivate recommendations: {e}") from e
        finally:
            session.close()

    def history(self, symbol: Optional[str] = None, limit: int = 100) -> List[Recommendation]:
        """Most recent recommendations, active or not."""
        session = self._session_factory()
        try:
            query = session.query(RecommendationRecord)
            if symbol:
                query = query.filter(RecommendationRecord.symbol == symbol.upper())
            records = (
                query.order_by(RecommendationRecord.created_at.desc(), RecommendationRecord.id.desc())
                .limit(limit)
                .all()
            )
            return [_record_to_recommendation(r) for r in records]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read recommendation history: {e}") from e
        finally:
            session.close()

    def save_earnings_snapshot(self, events: Iterable[EarningsEvent]) -> int:
        """Upsert fetched earnings into the earnings_calendar archive."""
        session = self._session_factory()
        count = 0
        try:
            for event in events:
                earnings_date = parse_date(event.date)
                record = (
                    session.query(EarningsCalendarRecord)
                    .filter(
                        EarningsCalendarRecord.symbol == event.symbol,
                        EarningsCalendarRecord.earnings_date == earnings_date,
                    )
                    .first()
                )
                if record is None:
                    record = EarningsCalendarRecord(symbol=event.symbol, earnings_date=earnings_date)
                    session.add(record)
                    session.flush()
                record.eps = event.eps
                record.eps_estimated = event.eps_estimated
                record.revenue = event.revenue
                record.revenue_estimated = event.revenue_estimated
                record.eps_growth = event.eps_growth
                record.market_cap = event.market_cap or 0.0
                record.time = event.time
                count += 1
            session.commit()
        except (SQLAlchemyError, ValueError) as e:
            session.rollback()
            raise PersistenceError(f"Failed to archive earnings: {e}") from e
        finally:
            session.close()
        return count

    def save_options_snapshot(self, chain: OptionsChain) -> int:
        """Upsert a chain's contracts into the options_data archive."""
        session = self._session_factory()
        count = 0
        try:
            for option in chain.options:
                expiration = parse_date(option.expiration)
                record = (
                    session.query(OptionsDataRecord)
                    .filter(
                        OptionsDataRecord.symbol == option.symbol,
                        OptionsDataRecord.strike_price == option.strike,
                        OptionsDataRecord.expiration_date == expiration,
                        OptionsDataRecord.option_type == option.option_type,
                    )
                    .first()
                )
                if record is None:
                    record = OptionsDataRecord(
                        symbol=option.symbol,
                        strike_price=option.strike,
                        expiration_date=expiration,
                        option_type=option.option_type,
                    )
                    session.add(record)
                    session.flush()
                record.bid = option.bid
                record.ask = option.ask
                record.premium = option.premium
                record.delta = option.delta
                record.implied_volatility = option.implied_volatility
                record.volume = option.volume
                record.open_interest = option.open_interest
                record.stock_price = chain.underlying_price
                count += 1
            session.commit()
        except (SQLAlchemyError, ValueError) as e:
            session.rollback()
            raise PersistenceError(f"Failed to archive options for {chain.symbol}: {e}") from e
        finally:
            session.close()
        return count
