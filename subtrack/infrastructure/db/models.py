"""
SQLAlchemy ORM models (subscription store)
"""
from datetime import date as date_type, datetime
from sqlalchemy import String, Integer, Text, TIMESTAMP, Date, Float, func
from sqlalchemy.orm import Mapped, mapped_column

from subtrack.infrastructure.db.session import Base


class SubscriptionModel(Base):
    """Subscription record as persisted; position keeps the user's order"""
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    cycle: Mapped[str] = mapped_column(String(10), nullable=False)  # weekly, monthly, yearly

    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)

    color: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    link: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
