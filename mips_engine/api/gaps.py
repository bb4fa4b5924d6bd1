"""
FastAPI router for data gap analysis.

Key Endpoints:
- POST /gaps/analyze - Re-derive and replace the gap set for a provider/year

Response shape:
    { "success": true, "data": { "gaps": [...], "summary": {...} } }
"""

import logging

from fastapi import APIRouter, HTTPException

from mips_engine.core.dependencies import SettingsDep
from mips_engine.core.exceptions import InputError
from mips_engine.models.schemas import ProviderYearRequest
from mips_engine.services.gap_analysis import analyze_gaps, summarize_gaps


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze", response_model=dict)
async def analyze(request: ProviderYearRequest, settings: SettingsDep) -> dict:
    try:
        gaps = await analyze_gaps(request.provider_id, request.performance_year, settings=settings)
        return {
            "success": True,
            "data": {
                "gaps": [g.model_dump(by_alias=True, mode="json") for g in gaps],
                "summary": summarize_gaps(gaps).model_dump(by_alias=True, mode="json"),
            },
        }

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error analyzing data gaps: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to analyze data gaps")
