"""Market reference rows used to scope staff role assignments."""
from datetime import datetime
from sqlalchemy import String, Integer, Table, Column, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, TYPE_CHECKING
from marketportal.core.time import utc_now
from marketportal.models.base import Base

if TYPE_CHECKING:
    from marketportal.models.user import User


# Association table for market-manager many-to-many relationship
market_managers = Table(
    'market_managers',
    Base.metadata,
    Column('market_id', Integer, ForeignKey('markets.market_id', ondelete='CASCADE'), primary_key=True),
    Column('user_id', Integer, ForeignKey('users.user_id', ondelete='CASCADE'), primary_key=True)
)


class Market(Base):
    """Public market. Only the fields this workflow reads are mapped."""
    __tablename__ = "markets"

    market_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    managers: Mapped[List["User"]] = relationship("User", secondary=market_managers)
