from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    hourly_rate = Column(Float, nullable=False, default=0.0)
    client_name = Column(String(255), nullable=True)
    client_email = Column(String(255), nullable=True)
    created_at = Column(BigInteger, nullable=False)  # ms since epoch

    time_entries = relationship("TimeEntry", back_populates="project", cascade="all, delete-orphan")


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(Integer, primary_key=True, index=True)
    start_time = Column(BigInteger, nullable=False, index=True)
    end_time = Column(BigInteger, nullable=False)
    duration = Column(BigInteger, nullable=False, default=0)  # always end_time - start_time
    is_manual = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=True)

    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    project = relationship("Project", back_populates="time_entries")


class ActiveTimer(Base):
    """The single running timer slot. The table holds zero rows or one row with id 1."""

    __tablename__ = "active_timer"
    __table_args__ = (CheckConstraint("id = 1", name="single_active_timer"),)

    id = Column(Integer, primary_key=True, default=1)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    start_time = Column(BigInteger, nullable=False)
