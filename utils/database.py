"""Database utilities for the append-only trade store."""
import json
import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column, String, Float, DateTime, Text, Enum,
    create_engine, or_, text
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import AppConfig, DatabaseConfig
from models.enums import (
    MarketRegime,
    RecommendationAction,
    TradeAction,
    TradeSource,
    TradingMode,
)
from models.trade import DailySummary, Trade, TradeHistoryFilters
from utils.exceptions import PersistenceError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TradeRecord(Base):
    """Enhanced trade history table. Rows are inserted, never updated."""
    __tablename__ = 'enhanced_trades'

    id = Column(String, primary_key=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    asset = Column(String, nullable=False, index=True)
    action = Column(Enum(TradeAction), nullable=False)
    quantity = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    nav_before = Column(Float, nullable=False)
    nav_after = Column(Float, nullable=False)
    position_size_fraction = Column(Float, nullable=False)
    ai_recommendation = Column(Enum(RecommendationAction), nullable=False)
    ai_confidence = Column(Float, nullable=False)
    ai_reason = Column(Text, nullable=False, default="")
    model_version = Column(String, nullable=False)
    regime = Column(Enum(MarketRegime), nullable=False, index=True)
    stop_loss = Column(Float)
    take_profit = Column(Float)
    source = Column(Enum(TradeSource), nullable=False, index=True)
    mode = Column(Enum(TradingMode), nullable=False, index=True)
    trade_id = Column(String, index=True)
    notes = Column(Text)
    correlation_cluster = Column(Text)  # JSON array

    created_at = Column(DateTime(timezone=True), nullable=False,
                        default=lambda: datetime.now(timezone.utc))

    def to_trade(self) -> Trade:
        """Convert the row to an immutable Trade."""
        return Trade(
            id=self.id,
            asset=self.asset,
            action=self.action,
            mode=self.mode,
            regime=self.regime,
            nav_before=self.nav_before,
            nav_after=self.nav_after,
            timestamp=_as_utc(self.timestamp),
            quantity=self.quantity,
            price=self.price,
            position_size_fraction=self.position_size_fraction,
            ai_recommendation=self.ai_recommendation,
            ai_confidence=self.ai_confidence,
            ai_reason=self.ai_reason or "",
            model_version=self.model_version,
            source=self.source,
            stop_loss=self.stop_loss,
            take_profit=self.take_profit,
            trade_id=self.trade_id,
            notes=self.notes,
            correlation_cluster=tuple(json.loads(self.correlation_cluster or "[]")),
            created_at=_as_utc(self.created_at)
        )


class DatabaseManager:
    """
    Trade store backed by SQLAlchemy.

    Append-only: ``save_trade`` inserts, nothing updates or deletes.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        """
        Initialize database manager.

        Args:
            config: Application configuration. Without a database section an
                in-memory SQLite store is used.
        """
        self.config = config
        self.db_config: Optional[DatabaseConfig] = config.database if config else None

        if not self.db_config:
            logger.warning("No database configuration found. Using in-memory SQLite.")
            db_url = "sqlite:///:memory:"
        else:
            db_url = self.db_config.url

        engine_kwargs: Dict[str, Any] = {
            "echo": self.db_config.echo if self.db_config else False,
            "pool_pre_ping": True  # Verify connections before using
        }

        if db_url.startswith("sqlite"):
            # Cycles write from executor threads
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in db_url or db_url == "sqlite://":
                # One shared connection, or every thread sees its own empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_size"] = self.db_config.pool_size
            engine_kwargs["max_overflow"] = self.db_config.max_overflow

        self.engine = create_engine(db_url, **engine_kwargs)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

        logger.info(f"DatabaseManager initialized with URL: {db_url}")

    @contextmanager
    def session(self):
        """
        Context manager for database sessions.

        Usage:
            with db.session() as session:
                # Use session
        """
        session = self.Session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception(f"Database error: {e}")
            raise
        finally:
            session.close()

    def save_trade(self, trade: Trade) -> Trade:
        """
        Record a trade.

        Args:
            trade: Trade to persist (id and created_at are assigned here)

        Returns:
            The stored Trade with id and created_at populated

        Raises:
            PersistenceError: If the insert fails
        """
        record = TradeRecord(
            id=trade.id or str(uuid.uuid4()),
            timestamp=trade.timestamp,
            asset=trade.asset,
            action=trade.action,
            quantity=trade.quantity,
            price=trade.price,
            nav_before=trade.nav_before,
            nav_after=trade.nav_after,
            position_size_fraction=trade.position_size_fraction,
            ai_recommendation=trade.ai_recommendation,
            ai_confidence=trade.ai_confidence,
            ai_reason=trade.ai_reason,
            model_version=trade.model_version,
            regime=trade.regime,
            stop_loss=trade.stop_loss,
            take_profit=trade.take_profit,
            source=trade.source,
            mode=trade.mode,
            trade_id=trade.trade_id,
            notes=trade.notes,
            correlation_cluster=json.dumps(list(trade.correlation_cluster)),
            created_at=trade.created_at or datetime.now(timezone.utc)
        )

        try:
            with self.session() as session:
                session.add(record)
            logger.debug(f"Saved trade {record.id} for {trade.asset} ({trade.action.value})")
            return record.to_trade()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to save trade for {trade.asset}: {e}",
                details={"asset": trade.asset, "trade_id": trade.trade_id}
            ) from e

    def get_trade_history(
        self,
        filters: Optional[TradeHistoryFilters] = None,
        ascending: bool = False,
        limit: Optional[int] = None
    ) -> List[Trade]:
        """
        Query trade history.

        Args:
            filters: Optional asset/action/mode/regime/source/date/search filters
            ascending: Oldest first when True (risk calculations), newest first otherwise
            limit: Maximum number of results

        Returns:
            List of Trade records
        """
        filters = filters or TradeHistoryFilters()

        try:
            with self.session() as session:
                query = session.query(TradeRecord)

                if filters.asset:
                    query = query.filter(TradeRecord.asset == filters.asset.upper())

                if filters.action:
                    # Partial match so "BUY" finds AUTO_BUY and MANUAL_BUY
                    matches = [a for a in TradeAction if filters.action.upper() in a.value]
                    query = query.filter(TradeRecord.action.in_(matches))

                if filters.mode:
                    query = query.filter(TradeRecord.mode == filters.mode)

                if filters.regime:
                    query = query.filter(TradeRecord.regime == filters.regime)

                if filters.source:
                    query = query.filter(TradeRecord.source == filters.source)

                if filters.date_from:
                    query = query.filter(TradeRecord.timestamp >= filters.date_from)

                if filters.date_to:
                    query = query.filter(TradeRecord.timestamp <= filters.date_to)

                if filters.search:
                    pattern = f"%{filters.search}%"
                    query = query.filter(or_(
                        TradeRecord.asset.ilike(pattern),
                        TradeRecord.ai_reason.ilike(pattern),
                        TradeRecord.notes.ilike(pattern)
                    ))

                if ascending:
                    query = query.order_by(TradeRecord.timestamp.asc(), TradeRecord.created_at.asc())
                else:
                    query = query.order_by(TradeRecord.timestamp.desc(), TradeRecord.created_at.desc())

                if limit:
                    query = query.limit(limit)

                return [record.to_trade() for record in query.all()]

        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to query trade history: {e}") from e

    def get_daily_summary(self, day: date) -> DailySummary:
        """
        Summarise the trades recorded on one UTC day.

        Args:
            day: Calendar day to summarise

        Returns:
            DailySummary (empty when there are no trades)
        """
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        trades = self.get_trade_history(
            TradeHistoryFilters(date_from=start, date_to=end)
        )
        trades = [t for t in trades if t.timestamp < end]
        return DailySummary.from_trades(trades)

    def health_check(self) -> Dict[str, Any]:
        """
        Check database health.

        Returns:
            Dictionary with health status
        """
        try:
            with self.session() as session:
                session.execute(text("SELECT 1"))
                return {"status": "healthy", "database": "accessible"}
        except SQLAlchemyError as e:
            return {"status": "unhealthy", "error": str(e)}
