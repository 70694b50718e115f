#!/usr/bin/env python3
"""
Demo data seeding script.

Loads a teacher, two students, a small Algebra question bank and one active
assessment into the configured database.

Usage:
    python -m backend.scripts.seed
"""

import sys
import asyncio
from typing import Dict

from backend.common.logger import app_logger
from backend.config import settings
from backend.container import ServiceContainer, build_sql_container
from backend.database.init_db import close_database, get_session_factory, initialize_database
from backend.domain.assessments.model import AssessmentDefinition, AssessmentDifficulty, AssessmentSettings
from backend.domain.questions.model import AnswerOption, Difficulty, Question, QuestionType
from backend.domain.users.model import UserAcademicRecord, UserRole

logger = app_logger.getChild("scripts.seed")


def demo_questions() -> list:
    return [
        Question.create(
            question_text="What is 2 + 2?",
            question_type=QuestionType.MULTIPLE_CHOICE,
            subject="Mathematics",
            topic="Algebra",
            difficulty=Difficulty.EASY,
            options=[
                AnswerOption("3", False),
                AnswerOption("4", True, "2 + 2 = 4"),
                AnswerOption("5", False),
            ],
        ),
        Question.create(
            question_text="Zero is an even number.",
            question_type=QuestionType.TRUE_FALSE,
            subject="Mathematics",
            topic="Algebra",
            difficulty=Difficulty.EASY,
            options=[AnswerOption("True", True), AnswerOption("False", False)],
        ),
        Question.create(
            question_text="Solve for x: 3x = 12",
            question_type=QuestionType.SHORT_ANSWER,
            subject="Mathematics",
            topic="Algebra",
            difficulty=Difficulty.MEDIUM,
            correct_answer="4",
        ),
        Question.create(
            question_text="What is the area of a circle of radius r?",
            question_type=QuestionType.SHORT_ANSWER,
            subject="Mathematics",
            topic="Geometry",
            difficulty=Difficulty.HARD,
            correct_answer="pi r^2",
        ),
    ]


async def seed(container: ServiceContainer) -> Dict[str, str]:
    """
    Store the demo data through the container's repositories.

    Returns:
        IDs of the created teacher, students and assessment
    """
    teacher = await container.users.save(UserAcademicRecord(
        id="teacher-1", name="Tara Teacher", email="teacher@examforge.dev", role=UserRole.TEACHER
    ))
    students = [
        await container.users.save(UserAcademicRecord(
            id=f"student-{n}", name=f"Student {n}", email=f"student{n}@examforge.dev",
            role=UserRole.STUDENT, grade="10", created_by=teacher.id
        ))
        for n in (1, 2)
    ]

    questions = [await container.questions.save(q) for q in demo_questions()]
    assessment = await container.assessments.save(AssessmentDefinition.create(
        title="Algebra Basics",
        subject="Mathematics",
        topic="Algebra",
        difficulty=AssessmentDifficulty.EASY,
        question_ids=[q.id for q in questions],
        settings=AssessmentSettings(time_limit_minutes=30, max_attempts=3),
        created_by=teacher.id,
    ))

    logger.info(f"Seeded {len(questions)} questions, {len(students)} students and assessment {assessment.id}")
    return {
        "teacher_id": teacher.id,
        "student_ids": ",".join(s.id for s in students),
        "assessment_id": assessment.id,
    }


async def async_main():
    try:
        await initialize_database(database_url=settings.DATABASE_URL, create_schema=True)
        ids = await seed(build_sql_container(get_session_factory(), settings))
        for key, value in ids.items():
            print(f"{key}: {value}")
    except Exception as e:
        logger.error(f"Error seeding database: {e}")
        sys.exit(1)
    finally:
        await close_database()

if __name__ == "__main__":
    asyncio.run(async_main())
