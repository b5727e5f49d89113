"""Admin messaging router: bypasses the connection gate, adds bulk send."""
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from alumnet.middleware.auth import get_current_admin, CurrentUser
from alumnet.realtime.hub import RealtimeHub, get_hub
from alumnet.routers.messages import get_messaging_service
from alumnet.schemas.messaging import BulkMessageRequest, MessageContentRequest
from alumnet.services.messaging_service import MessagingService

router = APIRouter(tags=["Admin Messaging"])  # No prefix since main.py adds /api/admin


@router.get("/conversation/{participant_id}")
def admin_get_or_create_conversation(
    participant_id: str,
    admin: CurrentUser = Depends(get_current_admin),
    service: MessagingService = Depends(get_messaging_service),
):
    conversation = service.admin_get_or_create_conversation(admin, participant_id)
    return {"success": True, "conversation": conversation}


@router.get("/conversations")
def admin_list_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CurrentUser = Depends(get_current_admin),
    service: MessagingService = Depends(get_messaging_service),
):
    result = service.list_conversations(admin.user_id, page, limit)
    return {"success": True, **result}


@router.post("/send-bulk")
async def admin_send_bulk(
    body: BulkMessageRequest,
    admin: CurrentUser = Depends(get_current_admin),
    service: MessagingService = Depends(get_messaging_service),
):
    """Send one text to many alumni; per-recipient failures are reported, not fatal."""
    report = await service.admin_send_bulk(admin, body.recipients, body.content)
    return {
        "success": True,
        "message": f"Messages sent successfully to {report['totalSent']} recipients",
        **report,
    }


@router.post("/conversation/{conversation_id}/send", status_code=status.HTTP_201_CREATED)
async def admin_send_message(
    conversation_id: str,
    body: MessageContentRequest,
    admin: CurrentUser = Depends(get_current_admin),
    service: MessagingService = Depends(get_messaging_service),
):
    message = await service.admin_send_message(admin.user_id, conversation_id, body.content)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"success": True, "message": message})


@router.get("/online-users")
async def online_users(
    admin: CurrentUser = Depends(get_current_admin),
    hub: RealtimeHub = Depends(get_hub),
):
    """Snapshot of the presence registry of this process."""
    users = hub.get_active_users()
    return {"success": True, "users": users, "count": len(users)}
