"""Tests for the Gemini content provider (Gemini client mocked)"""
import json
from unittest.mock import MagicMock, patch

import pytest

from engine import ImpactType, ModuleType, ProjectContext, SimulationState
from gemini_service import (
    ContentProviderError,
    GeminiContentProvider,
    parse_json,
    strip_code_fences,
)
from simulation_config import GeminiConfig

DECISIONS = [
    {
        "id": "d1",
        "category": "Technology",
        "question": "Which lithography process?",
        "options": [
            {"id": "o1", "label": "EUV", "description": "Leading edge",
             "impacts": {"capex": 900000, "opex": 10, "risk": 12, "marketShare": 8, "timeDelay": 4,
                         "investorConfidence": 5}},
            {"id": "o2", "label": "DUV", "description": "Mature",
             "impacts": {"capex": 400000, "opex": 5, "risk": -3, "marketShare": 2, "timeDelay": 0}},
        ],
    }
]


def response(payload):
    resp = MagicMock()
    resp.text = payload if isinstance(payload, str) else json.dumps(payload)
    return resp


@pytest.fixture
def models():
    with patch("gemini_service.genai") as genai:
        fast, pro = MagicMock(), MagicMock()
        genai.GenerativeModel.side_effect = [fast, pro]
        provider = GeminiContentProvider(GeminiConfig(api_key="test-key", model="fast", report_model="pro"))
        genai.configure.assert_called_once_with(api_key="test-key")
        yield provider, fast, pro


class TestJsonHandling:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```\n[1]\n```') == '[1]'
        assert strip_code_fences(' {"a": 1} ') == '{"a": 1}'

    def test_parse_json_error(self):
        with pytest.raises(ContentProviderError):
            parse_json("not json")


class TestGeminiContentProvider:
    def test_requires_api_key(self):
        with patch("gemini_service.genai"):
            with pytest.raises(ValueError):
                GeminiContentProvider(GeminiConfig(api_key=""))

    def test_project_context(self, models):
        provider, fast, _ = models
        fast.generate_content.return_value = response({
            "projectName": "Nile Fab",
            "companyName": "Delta Semis",
            "context": "Rising demand",
            "objectives": ["a", "b", "c"],
            "initialBudget": 250000000,
        })

        context = provider.generate_project_context("CHIP_FAB")

        assert context.project_name == "Nile Fab"
        assert context.initial_budget == 250_000_000
        prompt = fast.generate_content.call_args.args[0]
        assert "Semiconductor Fab" in prompt
        assert fast.generate_content.call_args.kwargs["generation_config"] == {"response_mime_type": "application/json"}

    def test_module_decisions(self, models):
        provider, fast, _ = models
        fast.generate_content.return_value = response("```json\n" + json.dumps(DECISIONS) + "\n```")

        decisions = provider.generate_module_decisions(ModuleType.MARKETING, ProjectContext(project_name="Nile Fab"))

        assert len(decisions) == 1
        assert decisions[0].options[0].impacts.capex == 900000
        assert decisions[0].options[1].impacts.investor_confidence == 0
        assert "MARKETING" in fast.generate_content.call_args.args[0]

    def test_random_event(self, models):
        provider, fast, _ = models
        fast.generate_content.return_value = response({
            "id": "e1", "title": "Tariffs", "description": "New import duties",
            "impactType": "NEGATIVE", "effectOn": "FINANCIAL",
            "kpiImpacts": {"riskIndex": 8},
        })

        event = provider.generate_random_event(SimulationState(project_name="Nile Fab"))

        assert event.impact_type == ImpactType.NEGATIVE
        assert event.kpi_impacts.risk_index == 8
        assert event.kpi_impacts.budget_impact == 0

    def test_final_report_uses_report_model(self, models):
        provider, fast, pro = models
        pro.generate_content.return_value = response("  Recommendation: accept.  ")

        state = SimulationState(project_name="Nile Fab")
        state.kpis.npv = 1228333
        state.kpis.irr = 40.0
        report = provider.evaluate_final_report(state)

        assert report == "Recommendation: accept."
        fast.generate_content.assert_not_called()
        prompt = pro.generate_content.call_args.args[0]
        assert "NPV=1228333" in prompt
        assert "IRR=40.0%" in prompt

    def test_api_error_wrapped(self, models):
        provider, fast, _ = models
        fast.generate_content.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(ContentProviderError, match="quota exceeded"):
            provider.generate_project_context("CHIP_FAB")

    def test_unexpected_shape_wrapped(self, models):
        provider, fast, _ = models
        fast.generate_content.return_value = response({"not": "a list"})

        with pytest.raises(ContentProviderError):
            provider.generate_module_decisions(ModuleType.TECHNICAL, ProjectContext(project_name="x"))

    def test_non_finite_capex_rejected(self, models):
        provider, fast, _ = models
        fast.generate_content.return_value = response(
            '[{"id": "d1", "category": "c", "question": "q",'
            ' "options": [{"id": "o1", "label": "x", "impacts": {"capex": NaN}}]}]')

        with pytest.raises(ContentProviderError, match="capex"):
            provider.generate_module_decisions(ModuleType.TECHNICAL, ProjectContext(project_name="x"))

    def test_non_finite_event_budget_rejected(self, models):
        provider, fast, _ = models
        fast.generate_content.return_value = response(
            '{"id": "e1", "title": "Boom", "impactType": "NEGATIVE",'
            ' "kpiImpacts": {"budgetImpact": Infinity}}')

        with pytest.raises(ContentProviderError, match="budgetImpact"):
            provider.generate_random_event(SimulationState(project_name="x"))
