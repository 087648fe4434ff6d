from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .db import Base
from .identity import TBA


class Block(Base):
    __tablename__ = "blocks"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    year = Column(String, nullable=False, default="")
    capacity = Column(Integer, nullable=False, default=0)
    enrolled = Column(Integer, nullable=False, default=0)


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=False, default="")


class Instructor(Base):
    __tablename__ = "instructors"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    subject_codes = Column(Text, nullable=False, default="")

    @property
    def subjects(self) -> list[str]:
        return [code.strip() for code in (self.subject_codes or "").split(",") if code.strip()]


class ScheduleEntry(Base):
    __tablename__ = "schedule_entries"

    id = Column(Integer, primary_key=True, index=True)
    block_id = Column(Integer, ForeignKey("blocks.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    instructor_id = Column(Integer, ForeignKey("instructors.id"), nullable=True)
    day = Column(String, nullable=False)
    start_time = Column(String, nullable=False)
    end_time = Column(String, nullable=False)
    room = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    block = relationship(Block, lazy="joined")
    subject = relationship(Subject, lazy="joined")
    instructor = relationship(Instructor, lazy="joined")

    @property
    def block_name(self) -> str | None:
        return self.block.name if self.block else None

    @property
    def subject_code(self) -> str:
        return self.subject.code if self.subject else ""

    @property
    def description(self) -> str:
        return self.subject.description if self.subject else ""

    @property
    def instructor_name(self) -> str:
        return self.instructor.name if self.instructor else TBA


class KeyValueRecord(Base):
    __tablename__ = "kv_slots"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
