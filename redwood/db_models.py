"""SQLAlchemy ORM models for the local aircraft registry."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from redwood.db import Base


class AircraftEntry(Base):
    """Static airframe metadata keyed by ICAO 24-bit address."""

    __tablename__ = "aircraft"

    icao24: Mapped[str] = mapped_column(String(6), primary_key=True)
    registration: Mapped[str | None] = mapped_column(String(16), nullable=True)
    manufacturer_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    typecode: Mapped[str | None] = mapped_column(String(16), nullable=True)
    operator: Mapped[str | None] = mapped_column(String(128), nullable=True)
    operator_callsign: Mapped[str | None] = mapped_column(String(64), nullable=True)
    owner: Mapped[str | None] = mapped_column(String(128), nullable=True)
