"""Speaking opportunity endpoints, including applying to one"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from covetalks.auth.session import SessionUser
from covetalks.dependencies import get_current_user, get_workflow_service
from covetalks.models.records import Page
from covetalks.models.requests import (
    ApplicationForm,
    OpportunityCreate,
    OpportunityStatusUpdate,
    OpportunityUpdate,
)
from covetalks.repositories.base import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from covetalks.services.workflow_service import WorkflowService

router = APIRouter(prefix="/api/opportunities", tags=["opportunities"])


@router.get("", response_model=Page)
def list_opportunities(
    status: Optional[str] = None,
    event_format: Optional[str] = Query(None, alias="format"),
    organization_id: Optional[str] = None,
    search: Optional[str] = None,
    mine: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    """
    Open opportunities by default. With mine=true, every opportunity the
    caller posted regardless of status unless one is given.
    """
    if not mine and status is None:
        status = "Open"
    return workflow.list_opportunities(
        status=status,
        event_format=event_format,
        organization_id=organization_id,
        posted_by=user.id if mine else None,
        search=search,
        page=page,
        page_size=page_size,
    )


@router.post("", status_code=201)
def create_opportunity(
    body: OpportunityCreate,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return workflow.create_opportunity(user.id, body)


@router.get("/{opportunity_id}")
def get_opportunity(
    opportunity_id: str,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return workflow.get_opportunity(opportunity_id, user.id)


@router.patch("/{opportunity_id}")
def update_opportunity(
    opportunity_id: str,
    body: OpportunityUpdate,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return workflow.update_opportunity(opportunity_id, user.id, body)


@router.patch("/{opportunity_id}/status")
def set_status(
    opportunity_id: str,
    body: OpportunityStatusUpdate,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return workflow.set_opportunity_status(opportunity_id, user.id, body.status)


@router.post("/{opportunity_id}/applications", status_code=201)
def apply(
    opportunity_id: str,
    body: ApplicationForm,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return workflow.submit_application(opportunity_id, user.id, body)


@router.get("/{opportunity_id}/applications")
def list_applications(
    opportunity_id: str,
    status: Optional[str] = None,
    user: SessionUser = Depends(get_current_user),
    workflow: WorkflowService = Depends(get_workflow_service),
):
    return {"applications": workflow.list_opportunity_applications(opportunity_id, user.id, status)}
