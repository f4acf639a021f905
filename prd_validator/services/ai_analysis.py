"""
LLM-backed PRD analysis.

Uses Ollama's /api/generate endpoint with whatever OLLAMA_LLM_MODEL is
configured. Each analysis dimension (completeness, clarity, market fit,
competitive positioning) is an independent LLM call; a comprehensive
analysis fans them out concurrently and keeps whatever finishes. A dimension
that times out, errors, or returns unparseable output is recorded as failed
and simply left out of the combined score.

Public API
----------
OllamaAnalysisService.analyze_prd(prd_data, analysis_type)        -> AnalysisReport
OllamaAnalysisService.analyze_dimension(dimension, prd_data)      -> DimensionOutcome
OllamaAnalysisService.generate_recommendations(prd_data)          -> Dict | None
OllamaAnalysisService.generate_executive_summary(prd_data, report) -> str | None
OllamaAnalysisService.check_health()                              -> bool
"""
from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import re
import weakref
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from prd_validator.config import settings
from prd_validator.errors import MalformedUpstreamResponseError
from prd_validator.services.scoring import Dimension, combine_scores

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt templates - edit these to tune LLM output without touching logic
# ---------------------------------------------------------------------------

_COMPLETENESS_PROMPT = """\
Analyze the completeness of this Product Requirements Document (PRD) and provide a detailed assessment.

PRD Content:
{prd_json}

Please evaluate:
1. Required sections present/missing
2. Quality of content in each section
3. Completeness score (0-100)
4. Specific recommendations for improvement

Respond ONLY with valid JSON. No explanation, no markdown:
{{"completenessScore": 0, "sectionAnalysis": {{"problemStatement": {{"present": true, "quality": 0, "issues": []}}}}, \
"missingElements": [], "recommendations": [], "overallAssessment": "..."}}\
"""

_CLARITY_PROMPT = """\
Analyze the clarity and readability of this Product Requirements Document (PRD).

PRD Content:
{prd_json}

Evaluate:
1. Language clarity and precision
2. Structure and organization
3. Ambiguities or unclear statements
4. Technical vs. business language balance
5. Clarity score (0-100)

Respond ONLY with valid JSON. No explanation, no markdown:
{{"clarityScore": 0, "strengths": [], "areasForImprovement": [], "ambiguousStatements": [], \
"recommendations": [], "overallAssessment": "..."}}\
"""

_MARKET_FIT_PROMPT = """\
Analyze the market fit and positioning of this product based on the PRD.

PRD Content:
{prd_json}

Evaluate:
1. Market opportunity size and validation
2. Target audience definition
3. Problem-solution fit
4. Competitive differentiation
5. Market fit score (0-100)

Respond ONLY with valid JSON. No explanation, no markdown:
{{"marketFitScore": 0, "marketOpportunity": {{"size": "...", "validation": "...", "trends": []}}, \
"targetAudience": {{"defined": true, "clarity": 0, "sizing": "..."}}, \
"problemSolutionFit": {{"problemClarity": 0, "solutionAlignment": 0, "validation": "..."}}, \
"recommendations": [], "overallAssessment": "..."}}\
"""

_COMPETITIVE_PROMPT = """\
Analyze the competitive positioning and market landscape for this product.

PRD Content:
{prd_json}

Evaluate:
1. Competitive landscape analysis
2. Positioning strategy
3. Differentiation opportunities
4. Competitive threats
5. Positioning score (0-100)

Respond ONLY with valid JSON. No explanation, no markdown:
{{"positioningScore": 0, "competitiveLandscape": {{"directCompetitors": [], "indirectCompetitors": [], "marketGaps": []}}, \
"positioningStrategy": {{"valueProposition": "...", "targetSegments": [], "differentiation": []}}, \
"competitiveThreats": [], "opportunities": [], "recommendations": [], "overallAssessment": "..."}}\
"""

_RECOMMENDATIONS_PROMPT = """\
Generate specific, actionable recommendations to improve this PRD.

PRD Content:
{prd_json}

Provide high-priority improvements, content enhancements, research
recommendations and an overall roadmap.

Respond ONLY with valid JSON. No explanation, no markdown:
{{"highPriority": [{{"title": "...", "description": "...", "impact": "high|medium|low", "effort": "high|medium|low", "timeline": "..."}}], \
"contentEnhancements": [{{"section": "...", "improvement": "...", "rationale": "..."}}], \
"researchRecommendations": [{{"area": "...", "method": "...", "timeline": "..."}}], \
"overallRoadmap": "..."}}\
"""

_EXECUTIVE_SUMMARY_PROMPT = """\
Generate a concise executive summary of this PRD and its validation results.

PRD Content:
{prd_json}

Analysis Results:
{results_json}

Create a summary suitable for executives including:
1. Product overview (2-3 sentences)
2. Key strengths and opportunities
3. Critical gaps and risks
4. Recommended next steps
5. Overall readiness assessment

Keep it under 300 words and use business-friendly language.\
"""

# dimension -> (prompt template, JSON key carrying the 0-100 score)
DIMENSION_PROMPTS: Dict[Dimension, Tuple[str, str]] = {
    Dimension.COMPLETENESS: (_COMPLETENESS_PROMPT, "completenessScore"),
    Dimension.CLARITY: (_CLARITY_PROMPT, "clarityScore"),
    Dimension.MARKET_FIT: (_MARKET_FIT_PROMPT, "marketFitScore"),
    Dimension.COMPETITIVE_POSITIONING: (_COMPETITIVE_PROMPT, "positioningScore"),
}

# analysis_type -> dimensions to run; unknown types fall back to completeness
ANALYSIS_PLANS: Dict[str, Tuple[Dimension, ...]] = {
    "comprehensive": tuple(Dimension),
    "completeness": (Dimension.COMPLETENESS,),
    "clarity": (Dimension.CLARITY,),
    "market-fit": (Dimension.MARKET_FIT,),
    "competitive": (Dimension.COMPETITIVE_POSITIONING,),
}

MAX_PROMPT_CHARS = 8000

# One limiter per running event loop, shared by every service instance
_SLOTS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Semaphore]" = (
    weakref.WeakKeyDictionary()
)


def _analysis_slots() -> asyncio.Semaphore:
    """Process-wide cap of ``settings.MAX_CONCURRENT_ANALYSES`` in-flight LLM calls."""
    loop = asyncio.get_running_loop()
    slots = _SLOTS.get(loop)
    if slots is None:
        slots = _SLOTS[loop] = asyncio.Semaphore(settings.MAX_CONCURRENT_ANALYSES)
    return slots


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class DimensionOutcome:
    """What one dimension call produced: a score, or the reason it has none."""

    dimension: Dimension
    score: Optional[float] = None
    analysis: Dict[str, Any] = dataclasses.field(default_factory=dict)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.score is not None


@dataclasses.dataclass(frozen=True)
class AnalysisReport:
    """All dimension outcomes of one analyze_prd run."""

    analysis_type: str
    outcomes: List[DimensionOutcome]
    recommendations: Optional[Dict[str, Any]] = None

    @property
    def scores(self) -> Dict[Dimension, float]:
        return {o.dimension: o.score for o in self.outcomes if o.succeeded}

    @property
    def failed(self) -> Dict[Dimension, str]:
        return {o.dimension: o.error or "no score" for o in self.outcomes if not o.succeeded}

    @property
    def overall_score(self) -> int:
        return combine_scores(self.scores)

    def results(self) -> Dict[str, Any]:
        """Per-dimension payloads keyed by dimension value, for API responses."""
        return {
            o.dimension.value: (o.analysis if o.succeeded else {"error": o.error})
            for o in self.outcomes
        }


# ---------------------------------------------------------------------------
# Main service class
# ---------------------------------------------------------------------------

class OllamaAnalysisService:
    """
    PRD analysis via Ollama /api/generate.

    LLM calls are limited process-wide to ``settings.MAX_CONCURRENT_ANALYSES``
    at a time. Each dimension is bounded by ``settings.ANALYSIS_TIMEOUT``,
    counted from the moment it holds a slot, so queueing behind other calls
    never eats into its budget. Handles small models' tendency to wrap JSON
    in markdown code fences.
    """

    LLM_TIMEOUT: float = float(settings.OLLAMA_TIMEOUT)

    def __init__(self) -> None:
        self.base_url = settings.OLLAMA_BASE_URL
        self.model = settings.OLLAMA_LLM_MODEL
        self.timeout = httpx.Timeout(self.LLM_TIMEOUT, connect=10.0)
        self.dimension_timeout = settings.ANALYSIS_TIMEOUT

    # ------------------------------------------------------------------
    # Public analysis methods
    # ------------------------------------------------------------------

    async def analyze_prd(
        self,
        prd_data: Mapping[str, Any],
        analysis_type: str = "comprehensive",
    ) -> AnalysisReport:
        """
        Run the dimensions selected by *analysis_type* concurrently.

        Never raises for a single dimension's failure; the report lists it
        under ``failed`` and the combined score ignores it.
        """
        dimensions = ANALYSIS_PLANS.get(analysis_type, ANALYSIS_PLANS["completeness"])
        include_recommendations = analysis_type == "comprehensive"

        tasks = [self.analyze_dimension(d, prd_data) for d in dimensions]
        if include_recommendations:
            tasks.append(self.generate_recommendations(prd_data))

        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: List[DimensionOutcome] = []
        for dimension, result in zip(dimensions, results):
            if isinstance(result, BaseException):
                logger.error("analyze_prd: %s crashed - %s", dimension.value, result)
                outcomes.append(DimensionOutcome(dimension=dimension, error=str(result)))
            else:
                outcomes.append(result)

        recommendations = None
        if include_recommendations:
            extra = results[-1]
            recommendations = extra if isinstance(extra, dict) else None

        report = AnalysisReport(
            analysis_type=analysis_type,
            outcomes=outcomes,
            recommendations=recommendations,
        )
        logger.info(
            "analyze_prd(%s): %d/%d dimensions scored, overall=%d",
            analysis_type,
            len(report.scores),
            len(outcomes),
            report.overall_score,
        )
        return report

    async def analyze_dimension(
        self,
        dimension: Dimension,
        prd_data: Mapping[str, Any],
    ) -> DimensionOutcome:
        """Score one dimension; failures and timeouts become an outcome with ``error`` set."""
        try:
            async with _analysis_slots():
                score, analysis = await asyncio.wait_for(
                    self._score_dimension(dimension, prd_data),
                    timeout=self.dimension_timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(
                "%s analysis timed out after %.0f s", dimension.value, self.dimension_timeout
            )
            return DimensionOutcome(dimension=dimension, error="timed out")
        except MalformedUpstreamResponseError as exc:
            logger.warning("%s analysis unusable: %s", dimension.value, exc.message)
            return DimensionOutcome(dimension=dimension, error=exc.message)
        except Exception as exc:
            logger.error("%s analysis failed: %s", dimension.value, exc, exc_info=True)
            return DimensionOutcome(dimension=dimension, error=str(exc))

        return DimensionOutcome(dimension=dimension, score=score, analysis=analysis)

    async def generate_recommendations(
        self,
        prd_data: Mapping[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Actionable improvement list, or None when the model gives nothing usable."""
        prompt = _RECOMMENDATIONS_PROMPT.format(prd_json=self._prd_json(prd_data))
        async with _analysis_slots():
            response = await self._call_llm(prompt, max_tokens=2000)
        ok, parsed = self._parse_json_robust(response)
        if not ok or not isinstance(parsed, dict):
            logger.warning("generate_recommendations: no usable JSON from model")
            return None
        return parsed

    async def generate_executive_summary(
        self,
        prd_data: Mapping[str, Any],
        report: AnalysisReport,
    ) -> Optional[str]:
        """Short business-language summary of the PRD and its analysis."""
        prompt = _EXECUTIVE_SUMMARY_PROMPT.format(
            prd_json=self._prd_json(prd_data),
            results_json=json.dumps(report.results(), indent=2, default=str)[:MAX_PROMPT_CHARS],
        )
        async with _analysis_slots():
            summary = await self._call_llm(prompt, max_tokens=500)
        return summary.strip() or None

    async def check_health(self) -> bool:
        """True if Ollama answers GET /api/tags."""
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Ollama health check failed: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Dimension scoring
    # ------------------------------------------------------------------

    async def _score_dimension(
        self,
        dimension: Dimension,
        prd_data: Mapping[str, Any],
    ) -> Tuple[float, Dict[str, Any]]:
        template, score_key = DIMENSION_PROMPTS[dimension]
        response = await self._call_llm(template.format(prd_json=self._prd_json(prd_data)))
        if not response:
            raise MalformedUpstreamResponseError(f"empty {dimension.value} response from model")

        ok, parsed = self._parse_json_robust(response)
        if not ok or not isinstance(parsed, dict):
            raise MalformedUpstreamResponseError(
                f"{dimension.value} response is not a JSON object"
            )

        return self._extract_score(parsed, score_key), parsed

    @staticmethod
    def _extract_score(parsed: Mapping[str, Any], key: str) -> float:
        """Read *key* as a number clamped to [0, 100]."""
        if key not in parsed:
            raise MalformedUpstreamResponseError(f"response is missing '{key}'")
        try:
            value = float(parsed[key])
        except (TypeError, ValueError):
            raise MalformedUpstreamResponseError(f"'{key}' is not a number: {parsed[key]!r}")
        return max(0.0, min(100.0, value))

    @staticmethod
    def _prd_json(prd_data: Mapping[str, Any]) -> str:
        return json.dumps(prd_data, indent=2, default=str)[:MAX_PROMPT_CHARS]

    # ------------------------------------------------------------------
    # Core LLM caller
    # ------------------------------------------------------------------

    async def _call_llm(self, prompt: str, max_tokens: int = 2000) -> str:
        """
        POST to Ollama /api/generate and return the response text.

        Callers hold an analysis slot around this call. Returns empty string
        on any transport error (timeout, connection failure, non-200 response).
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/api/generate",
                    json={
                        "model": self.model,
                        "prompt": prompt,
                        "stream": False,
                        "options": {
                            "num_predict": max_tokens,
                            "temperature": 0.3,
                        },
                    },
                )

            if resp.status_code == 200:
                return resp.json().get("response", "")

            logger.error(
                "_call_llm: Ollama returned HTTP %d: %s",
                resp.status_code,
                resp.text[:300],
            )
            return ""

        except httpx.TimeoutException:
            logger.error(
                "_call_llm: request timed out after %.0f s", self.LLM_TIMEOUT
            )
            return ""
        except httpx.HTTPError as exc:
            logger.error("_call_llm: transport error - %s", exc)
            return ""

    # ------------------------------------------------------------------
    # Robust JSON parsing
    # ------------------------------------------------------------------

    def _parse_json_robust(self, response: str) -> Tuple[bool, Any]:
        """
        Try multiple strategies to parse JSON from potentially messy LLM output.

        Handles:
        - Markdown code fences (```json … ```, ``` … ```)
        - Trailing commas before ] or }
        - Python-style True / False / None
        - Surrounding prose - finds the first balanced {...} or [...] block

        Returns ``(success, parsed_value)``.
        """
        if not response:
            return False, None

        text = response.strip()

        ok, val = self._try_json(text)
        if ok:
            return True, val

        stripped = self._strip_code_fences(text)
        if stripped != text:
            ok, val = self._try_json(stripped)
            if ok:
                return True, val
            text = stripped

        fixed = self._fix_json_issues(text)
        ok, val = self._try_json(fixed)
        if ok:
            return True, val

        for bracket_pair in (("{", "}"), ("[", "]")):
            fragment = self._extract_json_structure(text, *bracket_pair)
            if fragment:
                ok, val = self._try_json(fragment)
                if ok:
                    return True, val
                ok, val = self._try_json(self._fix_json_issues(fragment))
                if ok:
                    return True, val

        logger.warning(
            "_parse_json_robust: all strategies failed. Preview: %s",
            response[:400],
        )
        return False, None

    @staticmethod
    def _try_json(text: str) -> Tuple[bool, Any]:
        try:
            return True, json.loads(text)
        except (json.JSONDecodeError, ValueError):
            return False, None

    @staticmethod
    def _strip_code_fences(text: str) -> str:
        """Remove ```json / ``` delimiters that LLMs often wrap output in."""
        text = re.sub(r"^```(?:json|javascript|text)?\s*\n?", "", text, flags=re.IGNORECASE)
        text = re.sub(r"\n?```\s*$", "", text)
        return text.strip()

    @staticmethod
    def _fix_json_issues(text: str) -> str:
        """Repair the most common JSON mangling patterns from LLMs."""
        text = re.sub(r",(\s*[}\]])", r"\1", text)
        text = re.sub(r"\bTrue\b", "true", text)
        text = re.sub(r"\bFalse\b", "false", text)
        text = re.sub(r"\bNone\b", "null", text)
        return text.strip()

    @staticmethod
    def _extract_json_structure(text: str, open_b: str, close_b: str) -> str:
        """
        Find the first complete balanced open_b … close_b structure in *text*.
        Returns the matched fragment, or empty string if not found.
        """
        start = text.find(open_b)
        if start == -1:
            return ""

        depth = 0
        in_string = False
        escape_next = False

        for i, ch in enumerate(text[start:], start=start):
            if escape_next:
                escape_next = False
                continue
            if ch == "\\" and in_string:
                escape_next = True
                continue
            if ch == '"':
                in_string = not in_string
                continue
            if in_string:
                continue
            if ch == open_b:
                depth += 1
            elif ch == close_b:
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        return ""
