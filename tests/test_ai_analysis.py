"""Tests for the LLM analysis fan-out with the Ollama call replaced by canned replies."""
import asyncio

import pytest

from prd_validator.services import ai_analysis
from prd_validator.services.ai_analysis import (
    AnalysisReport,
    DimensionOutcome,
    OllamaAnalysisService,
)
from prd_validator.services.scoring import Dimension

PRD = {"sections": {"solution": "A faster checkout."}, "metrics": ["20% growth"]}


async def _canned_llm(self, prompt: str, max_tokens: int = 2000) -> str:
    """Completeness and clarity answer, market fit is garbage, positioning has a trailing comma."""
    if prompt.startswith("Analyze the completeness"):
        return '{"completenessScore": 80, "missingElements": []}'
    if prompt.startswith("Analyze the clarity"):
        return '```json\n{"clarityScore": 60, "strengths": ["short"]}\n```'
    if prompt.startswith("Analyze the market fit"):
        return "I think the market looks great!"
    if prompt.startswith("Analyze the competitive"):
        return 'Here you go: {"positioningScore": 70, "opportunities": [],}'
    if prompt.startswith("Generate specific"):
        return '{"highPriority": [], "overallRoadmap": "ship it"}'
    if prompt.startswith("Generate a concise executive summary"):
        return "  Ready for review.  "
    return ""


@pytest.fixture
def service(monkeypatch) -> OllamaAnalysisService:
    monkeypatch.setattr(OllamaAnalysisService, "_call_llm", _canned_llm)
    return OllamaAnalysisService()


@pytest.mark.asyncio
async def test_comprehensive_analysis_keeps_partial_results(service):
    report = await service.analyze_prd(PRD, "comprehensive")

    assert report.scores == {
        Dimension.COMPLETENESS: 80.0,
        Dimension.CLARITY: 60.0,
        Dimension.COMPETITIVE_POSITIONING: 70.0,
    }
    assert set(report.failed) == {Dimension.MARKET_FIT}
    assert report.overall_score == 70
    assert report.recommendations == {"highPriority": [], "overallRoadmap": "ship it"}

    results = report.results()
    assert results["clarity"]["strengths"] == ["short"]
    assert "error" in results["market_fit"]


@pytest.mark.asyncio
async def test_single_dimension_analysis(service):
    report = await service.analyze_prd(PRD, "clarity")
    assert [o.dimension for o in report.outcomes] == [Dimension.CLARITY]
    assert report.overall_score == 60
    assert report.recommendations is None


@pytest.mark.asyncio
async def test_unknown_analysis_type_falls_back_to_completeness(service):
    report = await service.analyze_prd(PRD, "vibes")
    assert [o.dimension for o in report.outcomes] == [Dimension.COMPLETENESS]
    assert report.overall_score == 80


@pytest.mark.asyncio
async def test_executive_summary_is_stripped(service):
    report = await service.analyze_prd(PRD, "completeness")
    summary = await service.generate_executive_summary(PRD, report)
    assert summary == "Ready for review."


@pytest.mark.asyncio
async def test_empty_model_reply_is_a_failed_dimension(monkeypatch):
    async def _silent(self, prompt, max_tokens=2000):
        return ""

    monkeypatch.setattr(OllamaAnalysisService, "_call_llm", _silent)
    report = await OllamaAnalysisService().analyze_prd(PRD, "comprehensive")

    assert report.scores == {}
    assert len(report.failed) == 4
    assert report.overall_score == 0
    assert report.recommendations is None


@pytest.mark.asyncio
async def test_slow_dimension_times_out(monkeypatch):
    async def _slow(self, prompt, max_tokens=2000):
        await asyncio.sleep(1)
        return '{"completenessScore": 90}'

    monkeypatch.setattr(OllamaAnalysisService, "_call_llm", _slow)
    service = OllamaAnalysisService()
    service.dimension_timeout = 0.01

    outcome = await service.analyze_dimension(Dimension.COMPLETENESS, PRD)
    assert not outcome.succeeded
    assert outcome.error == "timed out"


@pytest.mark.asyncio
async def test_waiting_for_a_slot_does_not_count_against_the_timeout(monkeypatch):
    async def _steady(self, prompt, max_tokens=2000):
        await asyncio.sleep(0.1)
        return '{"completenessScore": 70, "clarityScore": 70, "marketFitScore": 70, "positioningScore": 70}'

    single_slot = asyncio.Semaphore(1)
    monkeypatch.setattr(ai_analysis, "_analysis_slots", lambda: single_slot)
    monkeypatch.setattr(OllamaAnalysisService, "_call_llm", _steady)
    service = OllamaAnalysisService()
    # Four dimensions run one at a time take ~0.4 s; each alone needs ~0.1 s
    service.dimension_timeout = 0.25

    report = await service.analyze_prd(PRD, "comprehensive")

    assert report.failed == {}
    assert report.overall_score == 70


@pytest.mark.asyncio
async def test_analysis_slots_are_shared_across_services():
    assert ai_analysis._analysis_slots() is ai_analysis._analysis_slots()


@pytest.mark.asyncio
async def test_score_outside_range_is_clamped(monkeypatch):
    async def _enthusiastic(self, prompt, max_tokens=2000):
        return '{"clarityScore": 140}'

    monkeypatch.setattr(OllamaAnalysisService, "_call_llm", _enthusiastic)
    outcome = await OllamaAnalysisService().analyze_dimension(Dimension.CLARITY, PRD)
    assert outcome.score == 100.0


@pytest.mark.asyncio
async def test_missing_score_key_fails_dimension(monkeypatch):
    async def _wrong_key(self, prompt, max_tokens=2000):
        return '{"score": 50}'

    monkeypatch.setattr(OllamaAnalysisService, "_call_llm", _wrong_key)
    outcome = await OllamaAnalysisService().analyze_dimension(Dimension.CLARITY, PRD)
    assert outcome.score is None
    assert "clarityScore" in outcome.error


def test_report_properties_without_outcomes():
    report = AnalysisReport(analysis_type="comprehensive", outcomes=[])
    assert report.scores == {}
    assert report.overall_score == 0


def test_failed_outcome_reports_reason():
    report = AnalysisReport(
        analysis_type="clarity",
        outcomes=[DimensionOutcome(dimension=Dimension.CLARITY, error="boom")],
    )
    assert report.failed == {Dimension.CLARITY: "boom"}
    assert report.results() == {"clarity": {"error": "boom"}}


# ---------------------------------------------------------------------------
# JSON repair
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw,expected",
    [
        ('{"a": 1}', {"a": 1}),
        ('```json\n{"a": 1}\n```', {"a": 1}),
        ('{"a": [1, 2,],}', {"a": [1, 2]}),
        ('{"ok": True, "none": None}', {"ok": True, "none": None}),
        ('Sure! {"a": {"b": "}"}} hope that helps', {"a": {"b": "}"}}),
    ],
)
def test_parse_json_robust(raw, expected):
    ok, value = OllamaAnalysisService()._parse_json_robust(raw)
    assert ok
    assert value == expected


def test_parse_json_robust_gives_up_on_prose():
    ok, value = OllamaAnalysisService()._parse_json_robust("no json here")
    assert not ok
    assert value is None
