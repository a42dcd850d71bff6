import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class PriceCap(Base):
    """One row per derivation; the newest ``set_at`` for an assignment governs."""

    __tablename__ = "assignment_price_caps"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    assignment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("project_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    max_approved_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    search_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("quote_searches.id"), index=True
    )
    quote_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("quotes.id"))
    set_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    set_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
