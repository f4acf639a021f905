"""
PRD scoring endpoints.

POST /analyze      - AI dimension analysis + combined overall score.
POST /quick-score  - local heuristic score, no AI call.
POST /compare      - analyse two or more PRD versions and compare them.
GET  /benchmarks   - score bands per dimension.
POST /export       - download validation results as JSON or CSV.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse, Response

from prd_validator.models.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    CompareRequest,
    CompareResponse,
    ExportRequest,
    QuickScoreRequest,
    QuickScoreResponse,
    VersionComparison,
)
from prd_validator.services.ai_analysis import AnalysisReport, OllamaAnalysisService
from prd_validator.services.export import clean_for_export, to_csv
from prd_validator.services.scoring import BENCHMARKS, generate_comparison_insights, quick_score

logger = logging.getLogger(__name__)

router = APIRouter()


def _scores_by_name(report: AnalysisReport):
    return {d.value: score for d, score in report.scores.items()}


def _failures_by_name(report: AnalysisReport):
    return {d.value: error for d, error in report.failed.items()}


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_prd(body: AnalyzeRequest) -> AnalyzeResponse:
    """
    Run the AI analysis selected by ``analysis_type``.

    Dimensions that fail or time out are reported in ``failed_dimensions``
    and left out of ``overall_score``; the request itself still succeeds.
    """
    prd_data = body.prd_data.as_dict()
    service = OllamaAnalysisService()
    report = await service.analyze_prd(prd_data, body.analysis_type)

    executive_summary = None
    if body.include_executive_summary:
        executive_summary = await service.generate_executive_summary(prd_data, report)

    return AnalyzeResponse(
        analysis_type=report.analysis_type,
        overall_score=report.overall_score,
        scores=_scores_by_name(report),
        failed_dimensions=_failures_by_name(report),
        results=report.results(),
        recommendations=report.recommendations,
        executive_summary=executive_summary,
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/quick-score", response_model=QuickScoreResponse)
async def get_quick_score(body: QuickScoreRequest) -> QuickScoreResponse:
    """Approximate score from section lengths, content size, metrics and stakeholders."""
    return QuickScoreResponse(**dataclasses.asdict(quick_score(body.prd_data.as_dict())))


@router.post("/compare", response_model=CompareResponse)
async def compare_versions(body: CompareRequest) -> CompareResponse:
    """Analyse every version comprehensively, one after another, then compare overall scores."""
    service = OllamaAnalysisService()
    comparisons = []

    for index, version in enumerate(body.prd_versions, start=1):
        report = await service.analyze_prd(version.data.as_dict(), "comprehensive")
        comparisons.append(
            VersionComparison(
                version=version.name or f"Version {index}",
                overall_score=report.overall_score,
                scores=_scores_by_name(report),
                failed_dimensions=_failures_by_name(report),
            )
        )

    insights = generate_comparison_insights([c.model_dump() for c in comparisons])
    logger.info("compare: %d versions, best=%s", len(comparisons), insights.get("best_version"))

    return CompareResponse(
        comparisons=comparisons,
        insights=insights,
        comparison_type=body.comparison_type,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/benchmarks")
async def get_benchmarks() -> dict:
    """Industry score bands for each analysis dimension."""
    return BENCHMARKS


@router.post("/export")
async def export_results(body: ExportRequest) -> Response:
    """Return validation results as a downloadable JSON or CSV file."""
    fmt = body.format.lower()

    if fmt == "json":
        data = body.validation_results if body.include_raw_data else clean_for_export(body.validation_results)
        return JSONResponse(
            content=data,
            headers={"Content-Disposition": 'attachment; filename="prd-validation-results.json"'},
        )

    if fmt == "csv":
        return Response(
            content=to_csv(body.validation_results),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="prd-validation-results.csv"'},
        )

    if fmt == "pdf":
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="PDF export not yet implemented",
        )

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Unsupported export format '{body.format}'",
    )
