"""
FastAPI router for the program calendar.

Key Endpoints:
- GET /timeline/{year} - Timeline, current phase and upcoming deadlines

The optional ``now`` query parameter (ISO date) pins the evaluation date;
it defaults to today's UTC date.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from mips_engine.core.exceptions import InputError
from mips_engine.models.schemas import TimelineResponse
from mips_engine.services.timeline import generate_timeline, get_phase, get_upcoming_deadlines


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{year}", response_model=dict)
async def get_timeline(year: int, now: Optional[date] = Query(None)) -> dict:
    today = now or datetime.now(timezone.utc).date()
    try:
        timeline = generate_timeline(year)
        response = TimelineResponse(
            timeline=timeline,
            current_phase=get_phase(year, today),
            upcoming_deadlines=get_upcoming_deadlines(timeline, today),
        )
        return {"success": True, "data": response.model_dump(by_alias=True, mode="json")}

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error fetching MIPS timeline: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch MIPS timeline")
