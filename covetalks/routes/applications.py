"""Application endpoints for applicants and reviewers"""

from typing import Optional

from fastapi import APIRouter, Depends

from covetalks.auth.session import SessionUser
from covetalks.dependencies import get_current_user, get_workflow_service
from covetalks.models.requests import ApplicationReview
from covetalks.services.workflow_service import WorkflowService

router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.get("")
def my_applications(
    status: Optional[str] = None,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return {"applications": workflow.list_speaker_applications(user.id, status)}


@router.post("/{application_id}/withdraw")
def withdraw(
    application_id: str,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return workflow.withdraw_application(application_id, user.id)


@router.post("/{application_id}/review")
def review(
    application_id: str,
    body: ApplicationReview,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return workflow.review_application(application_id, user.id, body.status, body.message)
