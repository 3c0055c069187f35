from sqlalchemy import Column, Float, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from marketplace.database import Base
from marketplace.models.enums import JobStatus, PriceType, Urgency, enum_column


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Text, primary_key=True)
    poster_id = Column(Text, nullable=False)
    worker_id = Column(Text)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    location_address = Column(Text, nullable=False)
    location_lat = Column(Float, nullable=False)
    location_lng = Column(Float, nullable=False)
    location_city = Column(Text)
    location_state = Column(Text)
    location_zip = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    price_type = Column(enum_column(PriceType), nullable=False)
    urgency = Column(enum_column(Urgency), nullable=False, default=Urgency.NORMAL)
    estimated_duration_hours = Column(Integer)
    scheduled_start = Column(Text)
    actual_start = Column(Text)
    actual_end = Column(Text)
    status = Column(enum_column(JobStatus), nullable=False, default=JobStatus.OPEN)
    completion_notes = Column(Text)
    poster_rating = Column(Integer)
    worker_rating = Column(Integer)
    poster_review = Column(Text)
    worker_review = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    skills = relationship(
        "JobSkill", back_populates="job", cascade="all, delete-orphan", lazy="selectin"
    )
    applications = relationship(
        "Application", back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def required_skills(self) -> list[str]:
        return sorted(s.skill for s in self.skills)

    def set_required_skills(self, skills: list[str]) -> None:
        wanted = set(skills)
        for existing in list(self.skills):
            if existing.skill not in wanted:
                self.skills.remove(existing)
        present = {s.skill for s in self.skills}
        for skill in sorted(wanted - present):
            self.skills.append(JobSkill(skill=skill))


class JobSkill(Base):
    __tablename__ = "job_skills"

    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True)
    skill = Column(Text, primary_key=True)

    job = relationship("Job", back_populates="skills")
