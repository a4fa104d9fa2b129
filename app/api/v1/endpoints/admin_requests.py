from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.deps import get_registered_user, get_request_service
from app.core.config import Settings, get_settings
from app.core.errors import NotFoundError
from app.db.firestore import get_db
from app.models.admin import AdminRequest, AdminRequestProfile
from app.models.user import CurrentUser
from app.services.admin_requests import AdminRequestService
from app.services.notifications import notify_super_admins_of_request

router = APIRouter()


@router.post("", response_model=AdminRequest)
async def request_admin_access(profile: AdminRequestProfile, background_tasks: BackgroundTasks,
                               user: CurrentUser = Depends(get_registered_user),
                               service: AdminRequestService = Depends(get_request_service),
                               db=Depends(get_db), settings: Settings = Depends(get_settings)):
    """Files (or refreshes) the caller's own admin request."""
    request, created = await service.submit_request(user, profile)
    if created:
        background_tasks.add_task(notify_super_admins_of_request, db, settings, request)
    return request


@router.get("/me", response_model=AdminRequest)
async def my_admin_request(user: CurrentUser = Depends(get_registered_user),
                           service: AdminRequestService = Depends(get_request_service)):
    request = service.get(user.uid)
    if request is None:
        raise NotFoundError("No admin request on file")
    return request
