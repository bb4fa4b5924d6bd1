"""
FastAPI router for quality measure selection.

Key Endpoints:
- POST /measures/validate - Validate a candidate measure id list (no writes)
- GET /measures/catalog - Categorized catalog with selection recommendations
- POST /measures/select - Validate and replace a provider's selections
- POST /measures/performance/calculate - Recalculate derived quality performance

Invalid selections are returned as a validation result by /validate. /select
refuses to persist them and answers 400 with the violations and advisories.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from mips_engine.core.dependencies import SettingsDep
from mips_engine.core.exceptions import InputError
from mips_engine.models.enums import CollectionType
from mips_engine.models.schemas import (
    MeasureSelectionRequest,
    QualityPerformanceRequest,
    SelectionValidationRequest,
)
from mips_engine.services.measure_selection import (
    categorize_measures,
    fetch_quality_catalog,
    generate_measure_recommendations,
    replace_measure_selections,
    validate_measure_selection,
)
from mips_engine.services.performance_facts import calculate_quality_performance


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/validate", response_model=dict)
async def validate_selection(request: SelectionValidationRequest, settings: SettingsDep) -> dict:
    """
    Validate a candidate selection against the year's catalog.

    Raises:
        HTTPException 400: If the performance year is malformed.
        HTTPException 500: If the catalog cannot be read.
    """
    try:
        catalog = await fetch_quality_catalog(request.performance_year)
        result = validate_measure_selection(
            request.measure_ids,
            catalog,
            specialty=request.specialty,
            minimum_measures=settings.minimum_measures_required,
        )
        return {"success": True, "data": result.model_dump(by_alias=True, mode="json")}

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error validating measure selection: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to validate measure selection")


@router.get("/catalog", response_model=dict)
async def get_catalog(
    performance_year: int = Query(..., alias="performanceYear"),
    specialty: Optional[str] = Query(None),
    collection_type: Optional[CollectionType] = Query(None, alias="collectionType"),
) -> dict:
    """
    Available quality measures, categorized, with recommendations.

    Response:
        {
            "success": true,
            "data": {
                "measures": [...],
                "categories": {"recommended": [...], "outcome": [...], ...},
                "recommendations": [...]
            }
        }
    """
    try:
        catalog = await fetch_quality_catalog(performance_year, specialty, collection_type)
        categorized = categorize_measures(catalog, specialty)
        recommendations = generate_measure_recommendations(categorized)

        return {
            "success": True,
            "data": {
                "measures": [m.model_dump(by_alias=True, mode="json") for m in catalog],
                "categories": categorized.model_dump(by_alias=True, mode="json"),
                "recommendations": [r.model_dump(by_alias=True, mode="json") for r in recommendations],
            },
        }

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error fetching quality measures: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch quality measures")


@router.post("/select", response_model=dict)
async def select_measures(request: MeasureSelectionRequest, settings: SettingsDep) -> dict:
    """
    Replace the provider's selected quality measures.

    Raises:
        HTTPException 400: If identifiers are malformed or the selection
            violates the program minimum.
        HTTPException 500: If persistence fails.
    """
    try:
        validation, plan = await replace_measure_selections(
            request.provider_id,
            request.performance_year,
            request.measures,
            specialty=request.specialty,
            settings=settings,
        )

        if not validation.valid:
            raise HTTPException(
                status_code=400,
                detail={
                    "message": "Measure selection does not meet MIPS requirements",
                    "violations": validation.violations,
                    "advisories": validation.advisories,
                },
            )

        return {
            "success": True,
            "data": {
                "selectedCount": validation.counts.selected_count,
                "validation": validation.model_dump(by_alias=True, mode="json"),
                "dataCollectionPlan": plan.model_dump(by_alias=True, mode="json"),
            },
        }

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error selecting quality measures: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to select quality measures")


@router.post("/performance/calculate", response_model=dict)
async def calculate_performance(request: QualityPerformanceRequest, settings: SettingsDep) -> dict:
    """
    Recalculate rate, score and case-minimum flag for selected measures.

    Response:
        {
            "success": true,
            "data": {
                "calculatedMeasures": 5,
                "measuresWithMinimumCases": 4,
                "averagePerformanceRate": 81.2,
                "measures": [{"measureId": "001", "status": "calculated", ...}]
            }
        }
    """
    try:
        summary = await calculate_quality_performance(
            request.provider_id,
            request.performance_year,
            measure_id=request.measure_id,
            settings=settings,
        )
        return {"success": True, "data": summary.model_dump(by_alias=True, mode="json")}

    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error calculating quality performance: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to calculate quality performance")
