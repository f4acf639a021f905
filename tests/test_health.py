"""Tests for GET /api/health and the API root."""
import pytest
from httpx import AsyncClient

from prd_validator.services.ai_analysis import OllamaAnalysisService


def _ollama_up(monkeypatch, up: bool):
    async def _check(self):
        return up

    monkeypatch.setattr(OllamaAnalysisService, "check_health", _check)


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient, monkeypatch):
    _ollama_up(monkeypatch, True)
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["ollama"] == "ok"
    assert "X-Process-Time" in resp.headers


@pytest.mark.asyncio
async def test_health_degraded_without_ollama(client: AsyncClient, monkeypatch):
    _ollama_up(monkeypatch, False)
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["ollama"] == "error"


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "PRD Validator API"
