import logging

from fastapi import APIRouter, Body, HTTPException

from ..schemas import (
    DedupeRequest,
    DedupeResponse,
    SummaryViewRequest,
    SummaryViewResponse,
    TimeWindowsRequest,
    TimeWindowsResponse,
)
from ..services.ai_summary import build_summary_view, build_windows_view, dedupe_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/summary", tags=["summary"])


@router.post("/view", response_model=SummaryViewResponse)
def summary_view_endpoint(
    req: SummaryViewRequest = Body(
        ...,
        example={
            "ai_summary": {
                "status": "ok",
                "data": {
                    "profile_id": 42,
                    "engine": "daily",
                    "summary": "1) Morning Focus — Plan your day during time_windows[0].\n"
                    "2) Evening — Rest after Windows 3 and 4.",
                    "time_windows": [
                        {"name": "Dawn", "start": "2025-11-21T06:16:00+05:30", "end": "2025-11-21T07:46:00+05:30"},
                    ],
                },
            },
            "day_summary": "A steady day with room for focused work and rest.",
            "options": {"use_ampm": True, "slot_minutes": 90},
        },
    )
) -> SummaryViewResponse:
    view = build_summary_view(
        req.ai_summary,
        day_summary=req.day_summary,
        engine_windows=req.engine_windows,
        options=req.options.model_dump(),
    )
    try:
        return SummaryViewResponse(**view)
    except ValueError as exc:
        logger.exception("summary_view_serialization_failed")
        raise HTTPException(status_code=500, detail="summary view could not be serialized") from exc


@router.post("/time-windows", response_model=TimeWindowsResponse)
def time_windows_endpoint(
    req: TimeWindowsRequest = Body(
        ...,
        example={
            "data": {
                "layers": {
                    "time_windows": [
                        {"name": "Morning Focus", "start_display": "9:00 AM", "end_display": "10:30 AM", "score": 0.8},
                    ]
                }
            },
            "options": {"date": "2025-11-21"},
        },
    )
) -> TimeWindowsResponse:
    windows = build_windows_view(req.data, req.options.model_dump())
    return TimeWindowsResponse(time_windows=windows)


@router.post("/dedupe", response_model=DedupeResponse)
def dedupe_endpoint(
    req: DedupeRequest = Body(
        ...,
        example={"text": "Stay observant. Stay observant. Trust the plan.", "mode": "consecutive"},
    )
) -> DedupeResponse:
    options = req.model_dump(exclude={"text"})
    return DedupeResponse(text=dedupe_text(req.text, options))
