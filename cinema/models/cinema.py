from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cinema.db.base import Base
from cinema.models.security import User


program_programmers = Table(
    "program_programmers",
    Base.metadata,
    Column("program_id", ForeignKey("programs.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id"), primary_key=True),
)

program_staff = Table(
    "program_staff",
    Base.metadata,
    Column("program_id", ForeignKey("programs.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id"), primary_key=True),
)


class Program(Base):
    __tablename__ = "programs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    phase: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    creator_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Optimistic concurrency token. Set by the store on every write; the ORM adds
    # "WHERE version = <previous>" to each UPDATE/DELETE.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    programmers: Mapped[list[User]] = relationship(secondary=program_programmers)
    staff: Mapped[list[User]] = relationship(secondary=program_staff)
    screenings: Mapped[list["Screening"]] = relationship(
        back_populates="program",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}


class Screening(Base):
    __tablename__ = "screenings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    program_id: Mapped[int] = mapped_column(ForeignKey("programs.id"), nullable=False, index=True)
    submitter_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    genre: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    staff_member_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    room: Mapped[str | None] = mapped_column(String(100), nullable=True)
    scheduled_time: Mapped[date | None] = mapped_column(Date, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    submitted_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reviewed_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    final_submitted_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    program: Mapped[Program] = relationship(back_populates="screenings")

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}
