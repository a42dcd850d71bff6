import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Integer, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONType, utcnow


class QuoteKind(str, enum.Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"
    CAR = "car"


class QuoteSearch(Base):
    __tablename__ = "quote_searches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    assignment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("project_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[QuoteKind] = mapped_column(
        Enum(
            QuoteKind,
            name="quote_kind",
            native_enum=False,
            length=10,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=QuoteKind.FLIGHT,
        nullable=False,
    )
    provider: Mapped[str | None] = mapped_column(String(50))
    search_params: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    results_count: Mapped[int | None] = mapped_column(Integer)
    executed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    quotes: Mapped[list["Quote"]] = relationship(
        back_populates="search", cascade="all, delete-orphan"
    )


class Quote(Base):
    __tablename__ = "quotes"
    __table_args__ = (CheckConstraint("price > 0", name="ck_quotes_price_positive"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    search_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quote_searches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    provider: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(300))
    cabin_class: Mapped[str | None] = mapped_column(String(30))
    departs_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    arrives_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    return_departs_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    return_arrives_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    layovers: Mapped[int] = mapped_column(Integer, default=0)
    refundable: Mapped[bool] = mapped_column(Boolean, default=False)
    baggage_included: Mapped[bool] = mapped_column(Boolean, default=False)
    insurance_included: Mapped[bool] = mapped_column(Boolean, default=False)
    booking_reference: Mapped[str | None] = mapped_column(String(200))
    booking_url: Mapped[str | None] = mapped_column(String(1000))
    payload: Mapped[dict | None] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    search: Mapped["QuoteSearch"] = relationship(back_populates="quotes")
