"""
FastAPI router for attestations and composite scoring.

Key Endpoints:
- POST /pi/attest - Record a Promoting Interoperability attestation
- POST /ia/attest - Record a completed Improvement Activity
- POST /scores/compute - Compute and persist the composite score (Submission)

Composite scoring never fails because a category lacks data: such categories
score 0 and are listed in unavailableCategories on the returned Submission.
"""

import logging

from fastapi import APIRouter, HTTPException

from mips_engine.core.dependencies import SettingsDep
from mips_engine.core.exceptions import InputError, NotFoundError
from mips_engine.models.schemas import (
    IAAttestationRequest,
    PIAttestationRequest,
    ProviderYearRequest,
)
from mips_engine.services.composite import compute_composite
from mips_engine.services.performance_facts import (
    attest_improvement_activity,
    attest_pi_measure,
)


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Attestations
# =============================================================================


@router.post("/pi/attest", response_model=dict)
async def attest_pi(request: PIAttestationRequest) -> dict:
    """
    Attest a PI measure; points follow the measure threshold and bonus rules.

    Raises:
        HTTPException 400: Malformed identifiers or counts.
        HTTPException 404: Measure not in the year's PI catalog.
    """
    try:
        result = await attest_pi_measure(
            request.provider_id,
            request.performance_year,
            request.measure_id,
            request.numerator_value,
            request.denominator_value,
            evidence_documentation=request.evidence_documentation,
        )
        return {"success": True, "data": result.model_dump(by_alias=True, mode="json")}

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error submitting PI attestation: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit PI attestation")


@router.post("/ia/attest", response_model=dict)
async def attest_ia(request: IAAttestationRequest) -> dict:
    """
    Attest an Improvement Activity; points require a continuous 90-day span.

    Raises:
        HTTPException 400: Malformed identifiers or dates.
        HTTPException 404: Activity not in the year's IA catalog.
    """
    try:
        result = await attest_improvement_activity(
            request.provider_id,
            request.performance_year,
            request.activity_id,
            request.start_date,
            request.end_date,
            attestation_statement=request.attestation_statement,
            supporting_evidence=request.supporting_evidence,
        )
        return {"success": True, "data": result.model_dump(by_alias=True, mode="json")}

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error submitting IA attestation: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit IA attestation")


# =============================================================================
# Composite
# =============================================================================


@router.post("/scores/compute", response_model=dict)
async def compute_scores(request: ProviderYearRequest, settings: SettingsDep) -> dict:
    """
    Compute the four category scores, the composite and the payment adjustment.

    Example Response:
        {
            "success": true,
            "data": {
                "providerId": "prov-123",
                "performanceYear": 2024,
                "qualityScore": 82.0,
                "piScore": 100.0,
                "iaScore": 100.0,
                "costScore": 60.0,
                "compositeScore": 85.9,
                "paymentAdjustment": 3.92,
                "unavailableCategories": [],
                ...
            }
        }
    """
    try:
        submission = await compute_composite(
            request.provider_id,
            request.performance_year,
            settings=settings,
        )
        return {"success": True, "data": submission.model_dump(by_alias=True, mode="json")}

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error calculating MIPS scores: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to calculate MIPS scores")
