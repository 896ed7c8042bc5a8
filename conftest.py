"""Shared fixtures: an in-memory content provider with canned Gemini-shaped payloads"""
import pytest

from engine import MarketEvent, ProjectContext, ProjectDecision
from gemini_service import ContentProvider, ContentProviderError


def make_decision(decision_id, capex=100_000.0, risk=5, market=3, investor=2):
    return ProjectDecision.from_dict({
        "id": decision_id,
        "category": "Technology",
        "question": f"Question {decision_id}?",
        "options": [
            {
                "id": f"{decision_id}-a",
                "label": "Conservative",
                "description": "Proven supplier",
                "impacts": {"capex": capex, "opex": 0, "risk": -risk, "marketShare": 0,
                            "timeDelay": 0, "investorConfidence": investor},
            },
            {
                "id": f"{decision_id}-b",
                "label": "Balanced",
                "description": "Mixed approach",
                "impacts": {"capex": capex * 2, "opex": 0, "risk": 0, "marketShare": market,
                            "timeDelay": 1},
            },
            {
                "id": f"{decision_id}-c",
                "label": "Aggressive",
                "description": "Cutting-edge process",
                "impacts": {"capex": capex * 3, "opex": 0, "risk": risk * 3, "marketShare": market * 2,
                            "timeDelay": 3, "investorConfidence": -investor},
            },
        ],
    })


class FakeContentProvider(ContentProvider):
    """Deterministic provider; set `fail_on` to a method name to make it raise"""

    def __init__(self, budget=2_000_000.0, decisions_per_module=2, event=None, shared_ids=False):
        self.budget = budget
        self.decisions_per_module = decisions_per_module
        self.shared_ids = shared_ids  # same d1..dN ids in every module
        self.event = event or {
            "id": "e1",
            "title": "Supply chain disruption",
            "description": "Key equipment delayed",
            "impactType": "NEGATIVE",
            "effectOn": "TECHNICAL",
            "kpiImpacts": {"riskIndex": 10, "marketConfidence": -5, "budgetImpact": 50_000},
        }
        self.fail_on = set()
        self.calls = []

    def _call(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise ContentProviderError(f"{name} unavailable")

    def generate_project_context(self, project_type):
        self._call("generate_project_context")
        return ProjectContext.from_dict({
            "projectName": f"{project_type} Alpha",
            "companyName": "Acme Industrial",
            "context": "Growing regional demand",
            "objectives": ["Reach capacity", "Break even", "Expand"],
            "initialBudget": self.budget,
        })

    def generate_module_decisions(self, module, context):
        self._call("generate_module_decisions")
        prefix = "d" if self.shared_ids else f"{module.value.lower()}-"
        return [make_decision(f"{prefix}{i}") for i in range(1, self.decisions_per_module + 1)]

    def generate_random_event(self, state):
        self._call("generate_random_event")
        return MarketEvent.from_dict(self.event)

    def evaluate_final_report(self, state):
        self._call("evaluate_final_report")
        return f"Report for {state.project_name}: NPV {state.kpis.npv:.0f}"


@pytest.fixture
def provider():
    return FakeContentProvider()
