"""Connection request router. Accepted connections unlock direct messaging."""
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlmodel import Session

from alumnet.db.config import get_session
from alumnet.middleware.auth import get_current_user, CurrentUser
from alumnet.schemas.connection import SendRequestBody, serialize_connection, serialize_request
from alumnet.schemas.messaging import Pagination
from alumnet.services.connection_service import ConnectionService
from alumnet.services.conversation_store import ConversationStore
from alumnet.services.messaging_service import parse_id

router = APIRouter(tags=["Connections"])  # No prefix since main.py adds /api/connection


def get_connection_service(session: Session = Depends(get_session)) -> ConnectionService:
    """Dependency for getting ConnectionService instance."""
    return ConnectionService(session)


def _users(service: ConnectionService, *ids):
    return ConversationStore(service.session).resolve_users(ids)


@router.post("/request", status_code=status.HTTP_201_CREATED)
def send_connection_request(
    body: SendRequestBody,
    current_user: CurrentUser = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    request = service.send_request(current_user.user_id, body.to_user_id, body.message)
    users = _users(service, request.from_user_id, request.to_user_id)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "message": "Connection request sent successfully",
            "request": serialize_request(request, users),
        },
    )


@router.put("/request/{request_id}/accept")
def accept_connection_request(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    request, connection = service.accept_request(current_user.user_id, parse_id(request_id, "request"))
    users = _users(service, request.from_user_id, request.to_user_id)
    return {
        "success": True,
        "message": "Connection request accepted",
        "request": serialize_request(request, users),
        "connection": serialize_connection(connection, users, current_user.user_id),
    }


@router.put("/request/{request_id}/decline")
def decline_connection_request(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    service.decline_request(current_user.user_id, parse_id(request_id, "request"))
    return {"success": True, "message": "Connection request declined"}


@router.delete("/request/{request_id}/withdraw")
def withdraw_connection_request(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    service.withdraw_request(current_user.user_id, parse_id(request_id, "request"))
    return {"success": True, "message": "Connection request withdrawn"}


@router.get("/my-connections")
def my_connections(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    connections, total = service.list_connections(current_user.user_id, page, limit)
    users = _users(service, *[c.other_user(current_user.user_id) for c in connections])
    return {
        "success": True,
        "connections": [serialize_connection(c, users, current_user.user_id) for c in connections],
        "pagination": Pagination.build(page, limit, total).dump(),
    }


@router.get("/requests")
def connection_requests(
    request_type: str = Query("all", alias="type", pattern=r"^(sent|received|all)$"),
    current_user: CurrentUser = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    """Pending requests, split into sent and received."""
    grouped = service.list_requests(current_user.user_id, request_type)
    ids = {uid for r in grouped["all"] for uid in (r.from_user_id, r.to_user_id)}
    users = _users(service, *ids)
    return {
        "success": True,
        "requests": {
            key: [serialize_request(r, users) for r in items]
            for key, items in grouped.items()
        },
    }


@router.get("/status/{target_user_id}")
def connection_status(
    target_user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    state, record = service.status(current_user.user_id, target_user_id)
    response = {"success": True, "status": state}
    if state == "connected":
        users = _users(service, target_user_id)
        response["connection"] = serialize_connection(record, users, current_user.user_id)
    elif record is not None:
        users = _users(service, record.from_user_id, record.to_user_id)
        response["request"] = serialize_request(record, users)
    return response


@router.delete("/{connection_id}")
def remove_connection(
    connection_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    service.remove_connection(current_user.user_id, parse_id(connection_id, "connection"))
    return {"success": True, "message": "Connection removed successfully"}
