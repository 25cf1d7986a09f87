"""
Database models.
"""

from sqlalchemy import Boolean, Column, Date, DateTime, Float, Integer, JSON, String, UniqueConstraint
from sqlalchemy.sql import func

from optionstrike.db.database import Base


class RecommendationRecord(Base):
    """One scored put candidate. Only the latest generation is active."""
    __tablename__ = "recommendations"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(10), nullable=False, index=True)
    strike_price = Column(Float, nullable=False)
    expiration_date = Column(Date, nullable=False)
    premium = Column(Float, nullable=False)
    confidence_score = Column(Float, nullable=False, index=True)
    pop = Column(Float, nullable=False)
    delta = Column(Float, nullable=False)
    implied_volatility = Column(Float, nullable=False)
    premium_percentage = Column(Float, nullable=False)
    max_loss = Column(Float, nullable=False)
    breakeven = Column(Float, nullable=False)
    earnings_date = Column(Date, nullable=True)
    volume = Column(Integer, default=0)
    open_interest = Column(Integer, default=0)
    stock_price = Column(Float, default=0.0)
    eps_growth = Column(Float, default=0.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_active = Column(Boolean, default=True, index=True)


class ApiCacheEntry(Base):
    """
    Cached upstream payload.

    expires_at is the soft expiry (fresh reads); stale_until is the hard
    expiry after which the row is no longer usable even as a fallback.
    """
    __tablename__ = "api_cache"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    cache_key = Column(String(255), unique=True, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    stale_until = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class EarningsCalendarRecord(Base):
    """Archive of fetched earnings announcements."""
    __tablename__ = "earnings_calendar"
    __table_args__ = (
        UniqueConstraint("symbol", "earnings_date", name="uq_earnings_symbol_date"),
        {'extend_existing': True},
    )

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(10), nullable=False, index=True)
    earnings_date = Column(Date, nullable=False)
    eps = Column(Float, nullable=True)
    eps_estimated = Column(Float, nullable=True)
    revenue = Column(Float, nullable=True)
    revenue_estimated = Column(Float, nullable=True)
    eps_growth = Column(Float, default=0.0)
    market_cap = Column(Float, default=0.0)
    time = Column(String(10), default="bmo")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class OptionsDataRecord(Base):
    """Archive of fetched put contracts."""
    __tablename__ = "options_data"
    __table_args__ = (
        UniqueConstraint("symbol", "strike_price", "expiration_date", "option_type", name="uq_options_contract"),
        {'extend_existing': True},
    )

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(10), nullable=False, index=True)
    strike_price = Column(Float, nullable=False)
    expiration_date = Column(Date, nullable=False)
    option_type = Column(String(4), nullable=False, default="put")
    bid = Column(Float, default=0.0)
    ask = Column(Float, default=0.0)
    premium = Column(Float, default=0.0)
    delta = Column(Float, default=0.0)
    implied_volatility = Column(Float, default=0.0)
    volume = Column(Integer, default=0)
    open_interest = Column(Integer, default=0)
    stock_price = Column(Float, default=0.0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
