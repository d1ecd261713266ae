"""Public calendar status endpoint."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter

from app.api.deps import DbSession
from app.schemas.calendar import OpenStatusRead
from app.services import calendar_service

router = APIRouter()


@router.get("/status", response_model=OpenStatusRead, summary="Is the service open")
async def calendar_status(
    session: DbSession,
    at: datetime | None = None,
) -> OpenStatusRead:
    status_ = await calendar_service.is_open(session, at or datetime.now(UTC))
    return OpenStatusRead.model_validate(status_.to_dict())
