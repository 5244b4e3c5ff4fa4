"""
Page Endpoints

The dashboard summary, the auth pages the session gate routes between,
auto-login and logout. Page rendering lives in the web client; these
endpoints return the data it needs.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from covetalks.auth.auto_login import AutoLoginError, AutoLoginService, login_error_url
from covetalks.auth.session import ACCESS_COOKIE, SessionResolver, SessionUser, clear_session_cookies
from covetalks.config import Settings, get_settings
from covetalks.dependencies import (
    get_auto_login_service,
    get_billing_service,
    get_current_user,
    get_directory_service,
    get_messaging_service,
    get_session_resolver,
    get_workflow_service,
)
from covetalks.models.records import MemberType
from covetalks.services.billing_service import BillingService
from covetalks.services.directory_service import DirectoryService
from covetalks.services.messaging_service import MessagingService
from covetalks.services.workflow_service import WorkflowService
from covetalks.utils.exceptions import CoveTalksException
from covetalks.utils.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["pages"])


@router.get("/dashboard")
def dashboard(
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
    workflow: WorkflowService = Depends(get_workflow_service),
    messaging: MessagingService = Depends(get_messaging_service),
    billing: BillingService = Depends(get_billing_service),
):
    """Summary for the signed-in member's dashboard"""
    member = directory.get_member(user.id)
    summary = {
        "member": member,
        "unread_messages": messaging.unread_count(user.id),
        "subscription": billing.get_current_subscription(user.id),
    }

    if member.get("member_type") == MemberType.SPEAKER.value:
        applications = workflow.list_speaker_applications(user.id)
        by_status: dict = {}
        for application in applications:
            by_status[application["status"]] = by_status.get(application["status"], 0) + 1
        summary["applications"] = {"total": len(applications), "by_status": by_status}
    else:
        posted = workflow.list_opportunities(status=None, posted_by=user.id, page_size=5)
        summary["opportunities"] = {"total": posted.total, "recent": posted.items}

    return summary


@router.get("/auth/auto-login")
async def auto_login(
    token: Optional[str] = None,
    from_stripe: bool = Query(False, alias="fromStripe"),
    service: AutoLoginService = Depends(get_auto_login_service),
):
    try:
        location = await service.login(token, from_stripe)
    except AutoLoginError as e:
        return RedirectResponse(login_error_url(e.reason), status_code=302)
    except CoveTalksException as e:
        logger.error(f"Auto-login failed: {e.message}", extra={"error": e.to_dict()})
        return RedirectResponse(login_error_url("auto_login_failed"), status_code=302)
    return RedirectResponse(location, status_code=302)


@router.post("/auth/logout")
async def logout(
    request: Request,
    settings: Settings = Depends(get_settings),
    resolver: SessionResolver = Depends(get_session_resolver),
):
    await run_in_threadpool(resolver.sign_out, request.cookies.get(ACCESS_COOKIE))
    response = JSONResponse({"success": True})
    clear_session_cookies(response, settings)
    return response


@router.get("/auth/{page}")
def auth_page(page: str, request: Request):
    """Auth pages are rendered client-side; report what the page needs"""
    user = request.state.user
    return {
        "page": page,
        "authenticated": user is not None,
        "params": dict(request.query_params),
    }
