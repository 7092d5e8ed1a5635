from __future__ import annotations

from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class Founder(Base):
    __tablename__ = "founders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(300), default="")
    company_name: Mapped[str] = mapped_column(String(300), default="")
    company_stage: Mapped[str] = mapped_column(String(50), default="seed")
    round_status: Mapped[str] = mapped_column(String(30), default="pre_round")  # pre_round | round_open | round_closed
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    introductions: Mapped[list[Introduction]] = relationship("Introduction", back_populates="founder")


class Connector(Base):
    __tablename__ = "connectors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(300), default="")
    company: Mapped[str | None] = mapped_column(String(300), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    introductions: Mapped[list[Introduction]] = relationship("Introduction", back_populates="connector")


class Investor(Base):
    __tablename__ = "investors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    firm: Mapped[str | None] = mapped_column(String(300), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    introductions: Mapped[list[Introduction]] = relationship("Introduction", back_populates="investor")


class Introduction(Base):
    __tablename__ = "introductions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    founder_id: Mapped[int] = mapped_column(Integer, ForeignKey("founders.id"), nullable=False)
    connector_id: Mapped[int] = mapped_column(Integer, ForeignKey("connectors.id"), nullable=False)
    investor_id: Mapped[int] = mapped_column(Integer, ForeignKey("investors.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="intro_request_sent")
    date_requested: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_node_asked: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_introduced: Mapped[date | None] = mapped_column(Date, nullable=True)
    first_meeting_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    second_meeting_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_followup_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_followup_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    followup_owner: Mapped[str | None] = mapped_column(String(20), nullable=True, default="founder")
    pass_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    founder: Mapped[Founder] = relationship("Founder", back_populates="introductions")
    connector: Mapped[Connector] = relationship("Connector", back_populates="introductions")
    investor: Mapped[Investor] = relationship("Investor", back_populates="introductions")
    followup_logs: Mapped[list[FollowupLog]] = relationship(
        "FollowupLog", back_populates="introduction", cascade="all, delete-orphan",
    )


class FollowupLog(Base):
    __tablename__ = "followup_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    introduction_id: Mapped[int] = mapped_column(Integer, ForeignKey("introductions.id"), nullable=False)
    followup_type: Mapped[str] = mapped_column(String(30), nullable=False)  # connector_check | meeting_update | connector_update
    completed_by: Mapped[str] = mapped_column(String(20), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_action: Mapped[str | None] = mapped_column(Text, nullable=True)

    introduction: Mapped[Introduction] = relationship("Introduction", back_populates="followup_logs")
