from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.database import Base


class BloodResult(Base):
    """Long-form blood panel rows as written by the ingestion jobs."""

    __tablename__ = "blood"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    analyte: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
    collected_at: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)
    value_numeric: Mapped[float | None] = mapped_column(Float, nullable=True)
    value_text: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ref_low: Mapped[float | None] = mapped_column(Float, nullable=True)
    ref_high: Mapped[float | None] = mapped_column(Float, nullable=True)
    reference_range: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
