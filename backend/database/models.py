"""
Database tables for ExamForge.

Attempts carry a ``version`` column for compare-and-set updates and a
partial unique index that admits one IN_PROGRESS attempt per
(user, assessment). ``academic_contributions`` is the ledger that makes the
academic record update exactly-once.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text

from backend.database.base import Base, DocumentModel


class UserModel(DocumentModel):
    __tablename__ = "users"
    __indexed_fields__ = ("email", "role", "created_by")

    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(16), nullable=False)
    created_by = Column(String(64), nullable=True, index=True)

    # Academic totals live in columns so they can be incremented in place
    total_assessments = Column(Integer, nullable=False, default=0)
    total_score = Column(Integer, nullable=False, default=0)
    average_score = Column(Integer, nullable=False, default=0)
    last_activity = Column(DateTime, nullable=True)


class AcademicContributionModel(Base):
    __tablename__ = "academic_contributions"

    attempt_id = Column(String(64), primary_key=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    applied_at = Column(DateTime, nullable=False)


class QuestionModel(DocumentModel):
    __tablename__ = "questions"
    __indexed_fields__ = ("subject", "topic", "difficulty", "question_type", "status")

    subject = Column(String(100), nullable=False)
    topic = Column(String(100), nullable=False, index=True)
    difficulty = Column(String(16), nullable=False, index=True)
    question_type = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False)


class AssessmentModel(DocumentModel):
    __tablename__ = "assessments"
    __indexed_fields__ = ("subject", "status")

    subject = Column(String(100), nullable=False, index=True)
    status = Column(String(16), nullable=False)


class AttemptModel(DocumentModel):
    __tablename__ = "attempts"
    __indexed_fields__ = ("user_id", "assessment_id", "status", "score")

    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    assessment_id = Column(String(64), ForeignKey("assessments.id"), nullable=False, index=True)
    status = Column(String(16), nullable=False, index=True)
    score = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    started_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index(
            "uq_attempts_one_in_progress",
            "user_id",
            "assessment_id",
            unique=True,
            sqlite_where=text("status = 'IN_PROGRESS'"),
            postgresql_where=text("status = 'IN_PROGRESS'"),
        ),
    )
