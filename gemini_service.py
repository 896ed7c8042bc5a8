"""
Gemini Content Provider
Generates project briefs, module decisions, market events and the final
committee report for the feasibility simulation.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import google.generativeai as genai

from engine import (
    MarketEvent,
    ModuleType,
    ProjectContext,
    ProjectDecision,
    SimulationState,
    money,
)
from simulation_config import SESSION_RULES, GeminiConfig, project_type_names

logger = logging.getLogger(__name__)


class ContentProviderError(Exception):
    """Content generation failed (network, API or unparseable response)"""


class ContentProvider(ABC):
    """Source of AI-generated simulation content"""

    @abstractmethod
    def generate_project_context(self, project_type: str) -> ProjectContext:
        ...

    @abstractmethod
    def generate_module_decisions(self, module: ModuleType, context: ProjectContext) -> List[ProjectDecision]:
        ...

    @abstractmethod
    def generate_random_event(self, state: SimulationState) -> MarketEvent:
        ...

    @abstractmethod
    def evaluate_final_report(self, state: SimulationState) -> str:
        ...


def strip_code_fences(text: str) -> str:
    """Remove markdown code blocks around a JSON payload"""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_json(text: str):
    try:
        return json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise ContentProviderError(f"Invalid JSON from Gemini: {e}") from e


# ---------------- PROMPTS ----------------

CONTEXT_PROMPT = """
As a senior feasibility-study consultant, write a professional brief for a {project_label} project.
Include: a realistic company name, the current market context, specific technical challenges, and 3 strategic objectives.
Write in {language}, in a professional economic register.

Format as JSON:
{{
  "projectName": "Project name",
  "companyName": "Company name",
  "context": "Market and project context",
  "objectives": ["Objective 1", "Objective 2", "Objective 3"],
  "initialBudget": 250000000,
  "marketConditions": "Short description",
  "techReadiness": "Short description"
}}
"""

DECISIONS_PROMPT = """
Create {n_decisions} critical strategic decisions for the {module} feasibility module of the project "{project_name}".
Project context: {context}
Each decision must have exactly {n_options} professional options with realistic financial and technical trade-offs
(e.g. technology choice, pricing strategy, capital structure).
Impacts: capex in currency units, risk / marketShare / investorConfidence as KPI point changes (-30..30), timeDelay in months.
Write in {language}.

Format as JSON array:
[
  {{
    "id": "d1",
    "category": "Category",
    "question": "Decision question",
    "options": [
      {{
        "id": "o1",
        "label": "Option label",
        "description": "Trade-off description",
        "impacts": {{"capex": 0, "opex": 0, "risk": 0, "marketShare": 0, "timeDelay": 0, "investorConfidence": 0}}
      }}
    ]
  }}
]
"""

EVENT_PROMPT = """
Create one unexpected event (economic, political, technical or environmental) affecting the feasibility study of "{project_name}".
Current state: spent {spent} of {budget}, risk index {risk:.0f}/100, market confidence {market:.0f}/100.
The event must have a tangible effect on risk, confidence or budget.
Write in {language}.

Format as JSON:
{{
  "id": "e1",
  "title": "Event title",
  "description": "What happened",
  "impactType": "POSITIVE | NEGATIVE | NEUTRAL",
  "effectOn": "TECHNICAL | MARKETING | FINANCIAL | ALL",
  "kpiImpacts": {{"riskIndex": 0, "marketConfidence": 0, "budgetImpact": 0}}
}}
"""

REPORT_PROMPT = """
As a senior investment committee, analyse the final feasibility study of "{project_name}".
Financials: NPV={npv:.0f}, IRR={irr:.1f}%, capex spent {spent} against a budget of {budget}.
Indicators: risk={risk:.0f}, investor confidence={investor:.0f}, market confidence={market:.0f}, viability score={viability:.0f}/100.
Market events during the study:
{events}

Write a detailed executive report in {language} covering:
1. Financial analysis and economic feasibility.
2. Quality of the decisions taken.
3. Sensitivity and risk analysis.
4. Final recommendation (accept / reject / modify) with justification.
Use the register of a formal, high-level report.
"""


# ---------------- GEMINI PROVIDER ----------------

class GeminiContentProvider(ContentProvider):
    def __init__(self, config: Optional[GeminiConfig] = None):
        self.config = config if config else GeminiConfig()
        if not self.config.api_key:
            raise ValueError("GEMINI_API_KEY not found in environment variables")

        genai.configure(api_key=self.config.api_key)
        self.model = genai.GenerativeModel(self.config.model)
        self.report_model = genai.GenerativeModel(self.config.report_model)

    def _generate(self, model, prompt: str, as_json: bool = True):
        kwargs = {}
        if as_json:
            kwargs["generation_config"] = {"response_mime_type": "application/json"}
        try:
            response = model.generate_content(prompt, **kwargs)
            text = response.text
        except Exception as e:
            raise ContentProviderError(f"Gemini API error: {e}") from e

        if as_json:
            return parse_json(text)
        return text.strip()

    def generate_project_context(self, project_type: str) -> ProjectContext:
        label = project_type_names().get(project_type, project_type)
        data = self._generate(self.model, CONTEXT_PROMPT.format(
            project_label=label,
            language=self.config.language,
        ))
        try:
            return ProjectContext.from_dict(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise ContentProviderError(f"Unexpected project context shape: {e}") from e

    def generate_module_decisions(self, module: ModuleType, context: ProjectContext) -> List[ProjectDecision]:
        data = self._generate(self.model, DECISIONS_PROMPT.format(
            n_decisions=SESSION_RULES.decisions_per_module,
            n_options=SESSION_RULES.options_per_decision,
            module=module.value,
            project_name=context.project_name,
            context=context.context,
            language=self.config.language,
        ))
        try:
            return [ProjectDecision.from_dict(d) for d in data]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ContentProviderError(f"Unexpected decisions shape: {e}") from e

    def generate_random_event(self, state: SimulationState) -> MarketEvent:
        data = self._generate(self.model, EVENT_PROMPT.format(
            project_name=state.project_name,
            spent=money(state.spent),
            budget=money(state.budget),
            risk=state.kpis.risk_index,
            market=state.kpis.market_confidence,
            language=self.config.language,
        ))
        try:
            return MarketEvent.from_dict(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise ContentProviderError(f"Unexpected event shape: {e}") from e

    def evaluate_final_report(self, state: SimulationState) -> str:
        kpis = state.kpis
        events = "\n".join(f"- {e.title} ({e.impact_type.value})" for e in state.events) or "- None"
        logger.info("Requesting final report for %s from %s", state.project_name, self.config.report_model)
        return self._generate(self.report_model, REPORT_PROMPT.format(
            project_name=state.project_name,
            npv=kpis.npv,
            irr=kpis.irr,
            spent=money(state.spent),
            budget=money(state.budget),
            risk=kpis.risk_index,
            investor=kpis.investor_confidence,
            market=kpis.market_confidence,
            viability=kpis.viability_score,
            events=events,
            language=self.config.language,
        ), as_json=False)
