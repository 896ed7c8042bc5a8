"""
Feasibility Lab - Simulation Engine (Pure Logic, No UI)
=======================================================
Headless state model for the staged feasibility exercise.
Used by both the Streamlit app and the command-line projection tool.

Every transition takes a SimulationState and returns a new one; inputs are
never mutated.
"""

import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from simulation_config import (
    CAPITAL_INTENSIVE_TYPE,
    FINANCIAL_ASSUMPTIONS,
    SESSION_RULES,
)


# ==================== Enums ====================

class ModuleType(Enum):
    """Stages of the feasibility study"""
    INIT = "INIT"
    TECHNICAL = "TECHNICAL"
    MARKETING = "MARKETING"
    FINANCIAL = "FINANCIAL"
    FINAL_REPORT = "FINAL_REPORT"


MODULE_ORDER = [
    ModuleType.TECHNICAL,
    ModuleType.MARKETING,
    ModuleType.FINANCIAL,
    ModuleType.FINAL_REPORT,
]


class ImpactType(Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"


class EffectOn(Enum):
    TECHNICAL = "TECHNICAL"
    MARKETING = "MARKETING"
    FINANCIAL = "FINANCIAL"
    ALL = "ALL"


# ==================== Errors ====================

class SimulationError(Exception):
    """Invalid state transition"""


class DecisionError(SimulationError):
    """Unknown or already answered decision"""


# ==================== Helper Functions ====================

def clamp(x, a=0.0, b=100.0):
    """Clamp value between min and max"""
    return max(a, min(b, x))


def round_half_up(x: float, decimals: int = 0) -> float:
    """Round with ties going toward +inf (0.5 -> 1, -0.5 -> 0)"""
    m = 10 ** decimals
    return math.floor(x * m + 0.5) / m


def _num(data: dict, key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{key} must be a finite number, got {value!r}")
    return number


def decision_key(module: "ModuleType", decision_id: str) -> str:
    """Answers are recorded per module; providers may reuse ids across modules"""
    return f"{module.value}:{decision_id}"


def answered_option(state: "SimulationState", decision_id: str) -> Optional[str]:
    """Option chosen for a decision of the current module, if any"""
    return state.decisions.get(decision_key(state.current_module, decision_id))


def money(x):
    """Format number as money string"""
    if abs(x) >= 1_000_000:
        return f"${x/1_000_000:,.1f}M"
    return f"${x:,.0f}"


# ==================== Content Records ====================

@dataclass
class OptionImpacts:
    """Numeric effect of choosing an option"""
    capex: float = 0.0
    opex: float = 0.0
    risk: float = 0.0
    market_share: float = 0.0
    time_delay: float = 0.0
    investor_confidence: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "OptionImpacts":
        data = data or {}
        return cls(
            capex=_num(data, "capex"),
            opex=_num(data, "opex"),
            risk=_num(data, "risk"),
            market_share=_num(data, "marketShare"),
            time_delay=_num(data, "timeDelay"),
            investor_confidence=_num(data, "investorConfidence"),
        )


@dataclass
class DecisionOption:
    id: str
    label: str
    description: str = ""
    impacts: OptionImpacts = field(default_factory=OptionImpacts)

    @classmethod
    def from_dict(cls, data: dict) -> "DecisionOption":
        return cls(
            id=str(data["id"]),
            label=data.get("label", ""),
            description=data.get("description", ""),
            impacts=OptionImpacts.from_dict(data.get("impacts")),
        )


@dataclass
class ProjectDecision:
    id: str
    category: str
    question: str
    options: List[DecisionOption] = field(default_factory=list)
    context: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectDecision":
        return cls(
            id=str(data["id"]),
            category=data.get("category", ""),
            question=data.get("question", ""),
            options=[DecisionOption.from_dict(o) for o in data.get("options", [])],
            context=data.get("context"),
        )

    def find_option(self, option_id: str) -> Optional[DecisionOption]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


@dataclass
class KpiImpacts:
    """Event effect on KPIs and budget (missing fields count as zero)"""
    risk_index: float = 0.0
    market_confidence: float = 0.0
    budget_impact: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "KpiImpacts":
        data = data or {}
        return cls(
            risk_index=_num(data, "riskIndex"),
            market_confidence=_num(data, "marketConfidence"),
            budget_impact=_num(data, "budgetImpact"),
        )


@dataclass
class MarketEvent:
    id: str
    title: str
    description: str = ""
    impact_type: ImpactType = ImpactType.NEUTRAL
    effect_on: EffectOn = EffectOn.ALL
    kpi_impacts: KpiImpacts = field(default_factory=KpiImpacts)

    @classmethod
    def from_dict(cls, data: dict) -> "MarketEvent":
        try:
            impact_type = ImpactType(data.get("impactType"))
        except ValueError:
            impact_type = ImpactType.NEUTRAL
        try:
            effect_on = EffectOn(data.get("effectOn"))
        except ValueError:
            effect_on = EffectOn.ALL
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            description=data.get("description", ""),
            impact_type=impact_type,
            effect_on=effect_on,
            kpi_impacts=KpiImpacts.from_dict(data.get("kpiImpacts")),
        )


@dataclass
class ProjectContext:
    """AI-generated project brief"""
    project_name: str
    company_name: str = ""
    context: str = ""
    objectives: List[str] = field(default_factory=list)
    initial_budget: float = 0.0
    market_conditions: str = ""
    tech_readiness: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectContext":
        return cls(
            project_name=data.get("projectName", ""),
            company_name=data.get("companyName", ""),
            context=data.get("context", ""),
            objectives=list(data.get("objectives") or []),
            initial_budget=max(0.0, _num(data, "initialBudget")),
            market_conditions=data.get("marketConditions", ""),
            tech_readiness=data.get("techReadiness", ""),
        )


# ==================== State ====================

@dataclass
class Kpis:
    npv: float = 0.0
    irr: float = 0.0
    risk_index: float = SESSION_RULES.initial_risk_index
    market_confidence: float = SESSION_RULES.initial_market_confidence
    investor_confidence: float = SESSION_RULES.initial_investor_confidence
    viability_score: float = 0.0
    progress: float = 0.0  # 0..100


@dataclass
class SimulationState:
    """Complete session state (pure data, no UI)"""
    current_module: ModuleType = ModuleType.INIT
    project_type: str = ""
    project_name: str = ""
    budget: float = 0.0
    spent: float = 0.0  # may exceed budget
    decisions: Dict[str, str] = field(default_factory=dict)
    kpis: Kpis = field(default_factory=Kpis)
    events: List[MarketEvent] = field(default_factory=list)
    history: List[str] = field(default_factory=list)
    finalized: bool = False


# ==================== Financial Projection ====================

def revenue_factor(project_type: str) -> float:
    fa = FINANCIAL_ASSUMPTIONS
    if project_type == CAPITAL_INTENSIVE_TYPE:
        return fa.capital_intensive_revenue_factor
    return fa.default_revenue_factor


def discount_rate(risk_index: float) -> float:
    """Base rate plus a risk premium; not clamped beyond the KPI range"""
    fa = FINANCIAL_ASSUMPTIONS
    return fa.base_discount_rate + (risk_index / fa.risk_premium_divisor)


def annual_cash_flow(state: SimulationState) -> float:
    """Steady-state yearly cash flow: revenue minus opex"""
    fa = FINANCIAL_ASSUMPTIONS
    capex = state.spent
    kpis = state.kpis

    annual_revenue = (capex * revenue_factor(state.project_type)) \
        * (kpis.market_confidence / fa.market_confidence_norm) \
        * (kpis.investor_confidence / fa.investor_confidence_norm)
    annual_opex = (capex * fa.opex_ratio) * (1 + (kpis.risk_index / 100))
    return annual_revenue - annual_opex


def calculate_detailed_financials(state: SimulationState) -> Kpis:
    """Project final KPIs from the current state.

    NPV discounts a flat annual cash flow over a fixed horizon with no
    terminal value. IRR is a damped cash-flow-to-capex ratio, not a solved
    rate. With nothing spent the IRR ratio is undefined and reported as 0.

    Args:
        state: Session state (not modified)

    Returns:
        New Kpis with npv, irr, viability_score filled and progress at 100
    """
    fa = FINANCIAL_ASSUMPTIONS
    capex = state.spent
    risk = state.kpis.risk_index
    investor = state.kpis.investor_confidence

    inputs = (capex, risk, state.kpis.market_confidence, investor)
    if not all(math.isfinite(v) for v in inputs):
        raise SimulationError(f"Projection inputs must be finite: spent={capex}, kpis={inputs[1:]}")

    cash_flow = annual_cash_flow(state)
    rate = discount_rate(risk)

    npv = -capex
    for i in range(1, fa.horizon_years + 1):
        npv += cash_flow / (1 + rate) ** i

    if capex == 0:
        irr = 0.0
    else:
        irr = (cash_flow / capex) * 100 * fa.irr_damping

    viability = clamp(
        (fa.npv_positive_points if npv > 0 else fa.npv_negative_points)
        + (fa.irr_above_points if irr > fa.irr_threshold_pct else fa.irr_below_points)
        + (investor / 2)
        - (risk / 4)
    )

    kpis = copy.copy(state.kpis)
    kpis.npv = round_half_up(npv)
    kpis.irr = round_half_up(irr, 1)
    kpis.viability_score = round_half_up(viability)
    kpis.progress = 100.0
    return kpis


project = calculate_detailed_financials


def cash_flow_schedule(state: SimulationState) -> pd.DataFrame:
    """Year-by-year discounted cash flows behind the NPV figure

    Returns:
        DataFrame with year, cash_flow, discount_factor, present_value and
        cumulative_npv (starting from -capex)
    """
    fa = FINANCIAL_ASSUMPTIONS
    years = np.arange(1, fa.horizon_years + 1)
    rate = discount_rate(state.kpis.risk_index)
    cash_flow = annual_cash_flow(state)

    growth = (1 + rate) ** years.astype(float)
    present_value = cash_flow / growth
    cumulative = np.cumsum(np.concatenate([[-state.spent], present_value]))[1:]

    return pd.DataFrame({
        'year': years,
        'cash_flow': np.full(len(years), cash_flow),
        'discount_factor': 1 / growth,
        'present_value': present_value,
        'cumulative_npv': cumulative,
    })


# ==================== Transitions ====================

def new_state() -> SimulationState:
    """Fresh session state with the neutral KPI baseline"""
    return SimulationState()


def start_project(state: SimulationState, project_type: str, context: ProjectContext) -> SimulationState:
    """Begin the technical module for the chosen project type

    Args:
        state: State in module INIT
        project_type: Project type id (see simulation_config.PROJECT_TYPES)
        context: Generated project brief

    Returns:
        New state in module TECHNICAL
    """
    if state.current_module != ModuleType.INIT:
        raise SimulationError(f"Project already started (module {state.current_module.value})")

    gs = copy.deepcopy(state)
    gs.project_type = project_type
    gs.project_name = context.project_name
    gs.budget = context.initial_budget
    gs.current_module = ModuleType.TECHNICAL
    gs.kpis.progress = SESSION_RULES.progress_on_start
    gs.history.append(f"Project started: {context.project_name} ({project_type}), budget {money(context.initial_budget)}")
    return gs


def apply_decision(state: SimulationState, decision_id: str, option: DecisionOption) -> SimulationState:
    """Apply an option's impacts; each decision can be answered once

    Args:
        state: Current state
        decision_id: Id of the decision being answered
        option: Chosen option

    Returns:
        New state with spend, clamped KPIs and progress updated
    """
    if state.finalized:
        raise SimulationError("Simulation already finalized")
    key = decision_key(state.current_module, decision_id)
    if key in state.decisions:
        raise DecisionError(f"Decision {decision_id} already answered in {state.current_module.value}")

    gs = copy.deepcopy(state)
    impacts = option.impacts
    kpis = gs.kpis

    gs.spent += impacts.capex
    gs.decisions[key] = option.id
    kpis.risk_index = clamp(kpis.risk_index + impacts.risk)
    kpis.market_confidence = clamp(kpis.market_confidence + impacts.market_share)
    kpis.investor_confidence = clamp(kpis.investor_confidence + impacts.investor_confidence)
    kpis.progress = min(SESSION_RULES.progress_cap_before_final,
                        kpis.progress + SESSION_RULES.progress_per_decision)
    gs.history.append(f"{gs.current_module.value}: {decision_id} -> {option.label} (capex {money(impacts.capex)})")
    return gs


def apply_event(state: SimulationState, event: MarketEvent) -> SimulationState:
    """Apply a market event's KPI and budget impacts"""
    if state.finalized:
        raise SimulationError("Simulation already finalized")

    gs = copy.deepcopy(state)
    impacts = event.kpi_impacts
    kpis = gs.kpis

    penalty = SESSION_RULES.negative_event_investor_penalty if event.impact_type == ImpactType.NEGATIVE else 0
    kpis.risk_index = clamp(kpis.risk_index + impacts.risk_index)
    kpis.market_confidence = clamp(kpis.market_confidence + impacts.market_confidence)
    kpis.investor_confidence = clamp(kpis.investor_confidence - penalty)
    gs.spent += impacts.budget_impact
    gs.events.append(event)
    gs.history.append(f"Event ({event.impact_type.value}): {event.title}")
    return gs


def next_module_after(module: ModuleType) -> Optional[ModuleType]:
    """Next module in the study, or None when there is none"""
    if module not in MODULE_ORDER:
        return None
    idx = MODULE_ORDER.index(module)
    if idx + 1 >= len(MODULE_ORDER):
        return None
    return MODULE_ORDER[idx + 1]


def advance_module(state: SimulationState, module: ModuleType) -> SimulationState:
    """Move to a non-final module"""
    if module == ModuleType.FINAL_REPORT:
        raise SimulationError("Use finalize() to enter the final report")
    gs = copy.deepcopy(state)
    gs.current_module = module
    gs.history.append(f"Module: {module.value}")
    return gs


def finalize(state: SimulationState) -> SimulationState:
    """Run the projection once and enter the final report"""
    if state.finalized:
        raise SimulationError("Simulation already finalized")
    gs = copy.deepcopy(state)
    gs.kpis = calculate_detailed_financials(state)
    gs.current_module = ModuleType.FINAL_REPORT
    gs.finalized = True
    gs.history.append(f"Final evaluation: NPV {money(gs.kpis.npv)}, IRR {gs.kpis.irr:.1f}%")
    return gs


# ==================== Public API ====================

def is_over_budget(state: SimulationState) -> bool:
    return state.spent > state.budget


def is_finished(state: SimulationState) -> bool:
    return state.current_module == ModuleType.FINAL_REPORT


def is_recommended(state: SimulationState) -> bool:
    """Accept recommendation: positive NPV and a viability score above 60"""
    return state.kpis.npv > 0 and state.kpis.viability_score > 60


def get_results(state: SimulationState) -> dict:
    """Get final results from a finished session

    Args:
        state: Finalized state

    Returns:
        Dictionary with KPIs, spend and recommendation
    """
    kpis = state.kpis
    return {
        'project_name': state.project_name,
        'project_type': state.project_type,
        'budget': state.budget,
        'spent': state.spent,
        'over_budget': is_over_budget(state),
        'npv': kpis.npv,
        'irr': kpis.irr,
        'viability_score': kpis.viability_score,
        'risk_index': kpis.risk_index,
        'market_confidence': kpis.market_confidence,
        'investor_confidence': kpis.investor_confidence,
        'progress': kpis.progress,
        'recommended': is_recommended(state),
        'events': len(state.events),
        'decisions': len(state.decisions),
    }
