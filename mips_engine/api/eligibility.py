"""
FastAPI router for MIPS eligibility determination.

Key Endpoints:
- POST /eligibility/evaluate - Evaluate and persist eligibility for a provider/year

Response shape:
    { "success": true, "data": EligibilityRecord }

Ineligibility is a normal result (200 with status not_eligible or exempt);
only malformed identifiers are rejected with 400.
"""

import logging

from fastapi import APIRouter, HTTPException

from mips_engine.core.exceptions import InputError
from mips_engine.models.schemas import EligibilityRequest
from mips_engine.services.eligibility import determine_eligibility


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/evaluate", response_model=dict)
async def evaluate(request: EligibilityRequest) -> dict:
    """
    Evaluate MIPS eligibility.

    Volume facts may be supplied in the body (volumeFacts); otherwise they are
    aggregated from the provider's completed encounters for the year.

    Example Request:
        {
            "providerId": "prov-123",
            "performanceYear": 2024,
            "specialty": "cardiology",
            "volumeFacts": {
                "totalPatients": 312,
                "programPatients": 250,
                "programAllowedCharges": 50000
            }
        }

    Raises:
        HTTPException 400: If provider id or year is malformed.
        HTTPException 500: If the evaluation fails unexpectedly.
    """
    try:
        record = await determine_eligibility(
            request.provider_id,
            request.performance_year,
            volume_facts=request.volume_facts,
            specialty=request.specialty,
            tin=request.tin,
            npi=request.npi,
        )
        return {"success": True, "data": record.model_dump(by_alias=True, mode="json")}

    except InputError as e:
        logger.warning(f"POST /eligibility/evaluate rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error checking MIPS eligibility: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to check MIPS eligibility")
