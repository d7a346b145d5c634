"""
cush/api/system.py

Purpose: Diagnostics and activity tracking

- Key-value store round-trip check
- Client activity heartbeat
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from cush.api.deps import client_ip, current_session
from cush.core.security import SessionClaims
from cush.db.redis_client import test_store_connection
from cush.schemas.auth import ActivityRequest
from cush.services import user_service

router = APIRouter()


@router.get("/test-redis")
async def test_redis():
    result = await test_store_connection()
    return JSONResponse(content=result, status_code=200 if result["success"] else 500)


@router.post("/users/activity")
async def record_activity(
    request: Request,
    payload: Optional[ActivityRequest] = None,
    session: SessionClaims = Depends(current_session)
):
    activity_type = payload.type if payload else "activity"
    activity = await user_service.update_user_activity(session.id, client_ip(request), activity_type)
    return {"success": True, "activity": activity}
