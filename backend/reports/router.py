"""
Report API Router

Read-only performance reports. Report bodies use camelCase keys like the
rest of the API.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Path, Request

from backend.common.auth import get_current_user_id
from backend.common.serialization import camelize
from backend.reports.service import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_user_id)])


def get_report_service(request: Request) -> ReportService:
    return request.app.state.container.report_service


@router.get("/assessment/{assessment_id}")
async def assessment_report(
    assessment_id: str = Path(..., description="ID of the assessment"),
    service: ReportService = Depends(get_report_service)
) -> Dict[str, Any]:
    return camelize(await service.assessment_report(assessment_id))


@router.get("/user/{user_id}")
async def user_report(
    user_id: str = Path(..., description="ID of the user"),
    service: ReportService = Depends(get_report_service)
) -> Dict[str, Any]:
    return camelize(await service.user_report(user_id))


@router.get("/user/{user_id}/topics")
async def user_topics(
    user_id: str = Path(..., description="ID of the user"),
    service: ReportService = Depends(get_report_service)
) -> Dict[str, Any]:
    """Topic accuracy across the user's completed attempts, weakest first."""
    return {"topics": camelize(await service.user_topics(user_id))}


@router.get("/class/{teacher_id}")
async def class_report(
    teacher_id: str = Path(..., description="ID of the teacher whose students to report on"),
    service: ReportService = Depends(get_report_service)
) -> Dict[str, Any]:
    return camelize(await service.class_report(teacher_id))


@router.get("/subject/{subject}")
async def subject_report(
    subject: str = Path(..., description="Subject name"),
    service: ReportService = Depends(get_report_service)
) -> Dict[str, Any]:
    return camelize(await service.subject_report(subject))


@router.get("/system")
async def system_stats(service: ReportService = Depends(get_report_service)) -> Dict[str, Any]:
    return {"attempts": camelize(await service.system_stats())}
