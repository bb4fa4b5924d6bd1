"""
MIPS engine API package initialization.

Router modules:
- eligibility: eligibility evaluation
- measures: selection validation, categorized catalog, selection persistence
- scoring: PI/IA attestations and composite scoring
- gaps: data gap analysis
- timeline: program calendar and current phase
"""

from fastapi import APIRouter

from mips_engine.api.eligibility import router as eligibility_router
from mips_engine.api.measures import router as measures_router
from mips_engine.api.scoring import router as scoring_router
from mips_engine.api.gaps import router as gaps_router
from mips_engine.api.timeline import router as timeline_router

api_router = APIRouter()

api_router.include_router(eligibility_router, prefix="/eligibility", tags=["eligibility"])
api_router.include_router(measures_router, prefix="/measures", tags=["measures"])
api_router.include_router(scoring_router, tags=["scoring"])  # scoring router declares full paths
api_router.include_router(gaps_router, prefix="/gaps", tags=["gaps"])
api_router.include_router(timeline_router, prefix="/timeline", tags=["timeline"])

__all__ = [
    "api_router",
    "eligibility_router",
    "measures_router",
    "scoring_router",
    "gaps_router",
    "timeline_router",
]
