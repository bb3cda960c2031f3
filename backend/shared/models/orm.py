"""
SQLAlchemy 2.0 ORM models for the tables the live score sync reads and writes.
The schema (including the live_updated_at trigger on matches) is owned by the
application database; these mappings only cover the columns used here.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime, time
from typing import Any, Optional

from sqlalchemy import Date, DateTime, Float, Integer, String, Text, Time, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TournamentORM(Base):
    __tablename__ = "tournaments"

    no: Mapped[str] = mapped_column(String, primary_key=True)
    code: Mapped[Optional[str]] = mapped_column(String)
    name: Mapped[Optional[str]] = mapped_column(String)
    status: Mapped[Optional[str]] = mapped_column(String)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)


class MatchORM(Base):
    __tablename__ = "matches"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    no: Mapped[str] = mapped_column(String, nullable=False)
    tournament_no: Mapped[str] = mapped_column(String, nullable=False)
    no_in_tournament: Mapped[Optional[str]] = mapped_column(String)
    team_a_name: Mapped[Optional[str]] = mapped_column(String)
    team_b_name: Mapped[Optional[str]] = mapped_column(String)
    local_time: Mapped[Optional[time]] = mapped_column(Time)
    status: Mapped[Optional[str]] = mapped_column(String)
    match_points_a: Mapped[Optional[int]] = mapped_column(Integer)
    match_points_b: Mapped[Optional[int]] = mapped_column(Integer)
    points_team_a_set1: Mapped[Optional[int]] = mapped_column(Integer)
    points_team_b_set1: Mapped[Optional[int]] = mapped_column(Integer)
    points_team_a_set2: Mapped[Optional[int]] = mapped_column(Integer)
    points_team_b_set2: Mapped[Optional[int]] = mapped_column(Integer)
    points_team_a_set3: Mapped[Optional[int]] = mapped_column(Integer)
    points_team_b_set3: Mapped[Optional[int]] = mapped_column(Integer)
    live_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class SyncPerformanceLogORM(Base):
    __tablename__ = "sync_performance_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    function_type: Mapped[str] = mapped_column(String(50), nullable=False)
    concurrent_tournaments: Mapped[int] = mapped_column(Integer, default=0)
    total_matches: Mapped[int] = mapped_column(Integer, default=0)
    api_calls_per_minute: Mapped[int] = mapped_column(Integer, default=0)
    average_response_time: Mapped[float] = mapped_column(Float, default=0.0)
    error_rate: Mapped[float] = mapped_column(Float, default=0.0)
    additional_metrics: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict)


class SyncStatusORM(Base):
    __tablename__ = "sync_status"

    entity_type: Mapped[str] = mapped_column(String, primary_key=True)
    last_sync: Mapped[Optional[datetime]] = mapped_column(DateTime)
    success_count: Mapped[int] = mapped_column(Integer, default=0)
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text)
    last_error_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
