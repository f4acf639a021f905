"""Tests for /api/validation with the Ollama call replaced by canned replies."""
import pytest
from httpx import AsyncClient

from prd_validator.services.ai_analysis import OllamaAnalysisService
from prd_validator.services.structure_validator import REQUIRED_SECTIONS

PRD = {"sections": {"solution": "A faster checkout."}, "metrics": ["20% growth"]}


@pytest.fixture
def canned_llm(monkeypatch):
    """Completeness 80 and clarity 60 succeed; market fit and positioning return prose."""

    async def _reply(self, prompt: str, max_tokens: int = 2000) -> str:
        if prompt.startswith("Analyze the completeness"):
            return '{"completenessScore": 80}'
        if prompt.startswith("Analyze the clarity"):
            return '{"clarityScore": 60}'
        if prompt.startswith("Generate a concise executive summary"):
            return "Solid draft."
        if prompt.startswith("Generate specific"):
            return '{"highPriority": []}'
        return "no idea"

    monkeypatch.setattr(OllamaAnalysisService, "_call_llm", _reply)


@pytest.mark.asyncio
async def test_analyze_comprehensive_reports_partial_failure(client: AsyncClient, canned_llm):
    resp = await client.post(
        "/api/validation/analyze",
        json={"prd_data": PRD, "analysis_type": "comprehensive"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["overall_score"] == 70
    assert data["scores"] == {"completeness": 80.0, "clarity": 60.0}
    assert set(data["failed_dimensions"]) == {"market_fit", "competitive_positioning"}
    assert data["recommendations"] == {"highPriority": []}
    assert data["executive_summary"] is None


@pytest.mark.asyncio
async def test_analyze_with_executive_summary(client: AsyncClient, canned_llm):
    resp = await client.post(
        "/api/validation/analyze",
        json={"prd_data": PRD, "analysis_type": "clarity", "include_executive_summary": True},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["analysis_type"] == "clarity"
    assert data["overall_score"] == 60
    assert data["executive_summary"] == "Solid draft."


@pytest.mark.asyncio
async def test_quick_score(client: AsyncClient):
    prd = {
        "sections": {name: "x" * 2500 for name in REQUIRED_SECTIONS},
        "metrics": ["20% growth"],
        "stakeholders": ["for Retail Managers"],
    }
    resp = await client.post("/api/validation/quick-score", json={"prd_data": prd})
    assert resp.status_code == 200
    data = resp.json()
    assert data["overall_score"] == 100
    assert data["breakdown"] == {"sections": 40, "content": 30, "metrics": 30}
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_compare_versions(client: AsyncClient, canned_llm):
    resp = await client.post(
        "/api/validation/compare",
        json={"prd_versions": [{"name": "Draft", "data": PRD}, {"data": PRD}]},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert [c["version"] for c in data["comparisons"]] == ["Draft", "Version 2"]
    assert all(c["overall_score"] == 70 for c in data["comparisons"])
    assert data["insights"]["best_version"] == "Draft"
    assert data["insights"]["improvements"] == ["Average score: 70", "Score range: 70 - 70"]
    assert data["comparison_type"] == "side-by-side"


@pytest.mark.asyncio
async def test_compare_needs_two_versions(client: AsyncClient):
    resp = await client.post(
        "/api/validation/compare",
        json={"prd_versions": [{"data": PRD}]},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_benchmarks(client: AsyncClient):
    resp = await client.get("/api/validation/benchmarks")
    assert resp.status_code == 200
    data = resp.json()
    assert data["completeness"]["excellent"]["min"] == 85
    assert data["market_fit"]["poor"]["max"] == 49


RESULTS = {
    "overall_score": 72,
    "completeness": {"completenessScore": 80},
    "clarity": {"score": 64},
    "apiKeys": {"ollama": "secret"},
    "tokens": ["abc"],
}


@pytest.mark.asyncio
async def test_export_json_strips_sensitive_keys(client: AsyncClient):
    resp = await client.post(
        "/api/validation/export",
        json={"validation_results": RESULTS, "format": "json"},
    )
    assert resp.status_code == 200
    assert "attachment" in resp.headers["content-disposition"]
    data = resp.json()
    assert "apiKeys" not in data
    assert "tokens" not in data
    assert data["overall_score"] == 72


@pytest.mark.asyncio
async def test_export_json_raw(client: AsyncClient):
    resp = await client.post(
        "/api/validation/export",
        json={"validation_results": RESULTS, "format": "json", "include_raw_data": True},
    )
    assert resp.json()["apiKeys"] == {"ollama": "secret"}


@pytest.mark.asyncio
async def test_export_csv(client: AsyncClient):
    resp = await client.post(
        "/api/validation/export",
        json={"validation_results": RESULTS, "format": "csv"},
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.text.splitlines() == [
        "Metric,Score,Assessment",
        "Completeness,80,Comprehensive",
        "Clarity,64,Clear",
        "Overall Score,72,Balanced",
    ]


@pytest.mark.asyncio
async def test_export_pdf_not_implemented(client: AsyncClient):
    resp = await client.post(
        "/api/validation/export",
        json={"validation_results": RESULTS, "format": "pdf"},
    )
    assert resp.status_code == 501


@pytest.mark.asyncio
async def test_export_unknown_format(client: AsyncClient):
    resp = await client.post(
        "/api/validation/export",
        json={"validation_results": RESULTS, "format": "xml"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "prd_data",
    [
        {"sections": {"solution": 5}},
        {"sections": ["solution"]},
        {"stakeholders": [{"name": "Ops"}]},
    ],
)
async def test_quick_score_rejects_malformed_prd_data(client: AsyncClient, prd_data):
    resp = await client.post("/api/validation/quick-score", json={"prd_data": prd_data})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_analyze_rejects_malformed_prd_data(client: AsyncClient, canned_llm):
    resp = await client.post(
        "/api/validation/analyze",
        json={"prd_data": {"sections": "all of them"}},
    )
    assert resp.status_code == 422
