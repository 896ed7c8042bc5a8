"""
Configuration for the feasibility simulation
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DOTENV_PATH = os.path.join(BASE_DIR, ".env")

load_dotenv(dotenv_path=DOTENV_PATH)


@dataclass
class ProjectType:
    """A selectable project category"""
    id: str
    name: str
    description: str


# CHIP_FAB is the capital-intensive category (higher revenue factor)
CAPITAL_INTENSIVE_TYPE = "CHIP_FAB"

PROJECT_TYPES: List[ProjectType] = [
    ProjectType("CHIP_FAB", "Semiconductor Fab", "Advanced-node wafer fabrication plant"),
    ProjectType("SOLAR_FARM", "Utility Solar Farm", "Grid-scale photovoltaic generation"),
    ProjectType("LOGISTICS_HUB", "Logistics Hub", "Automated regional distribution center"),
    ProjectType("PHARMA_PLANT", "Pharmaceutical Plant", "Generic drug manufacturing facility"),
]


@dataclass
class FinancialAssumptions:
    """Fixed coefficients of the DCF projection"""
    capital_intensive_revenue_factor: float = 0.45
    default_revenue_factor: float = 0.35
    market_confidence_norm: float = 50.0   # market_confidence / 50
    investor_confidence_norm: float = 70.0  # investor_confidence / 70
    opex_ratio: float = 0.08                # 8% of capex per year
    base_discount_rate: float = 0.10
    risk_premium_divisor: float = 400.0     # +0.25% per risk point
    horizon_years: int = 10
    irr_damping: float = 0.9

    # Viability score components
    npv_positive_points: int = 40
    npv_negative_points: int = 10
    irr_threshold_pct: float = 15.0
    irr_above_points: int = 30
    irr_below_points: int = 15


FINANCIAL_ASSUMPTIONS = FinancialAssumptions()


@dataclass
class SessionRules:
    """Progress and KPI rules applied during a session"""
    initial_risk_index: float = 30.0
    initial_market_confidence: float = 50.0
    initial_investor_confidence: float = 70.0

    progress_on_start: float = 10.0
    progress_per_decision: float = 2.0
    progress_cap_before_final: float = 95.0

    negative_event_investor_penalty: float = 5.0

    decisions_per_module: int = 4
    options_per_decision: int = 3


SESSION_RULES = SessionRules()


@dataclass
class GeminiConfig:
    """Gemini model selection, read from the environment"""
    api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))
    model: str = field(default_factory=lambda: os.getenv("GEMINI_MODEL", "gemini-2.5-flash"))
    report_model: str = field(default_factory=lambda: os.getenv("GEMINI_REPORT_MODEL", "gemini-2.5-pro"))
    language: str = field(default_factory=lambda: os.getenv("REPORT_LANGUAGE", "English"))


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def project_type_names() -> Dict[str, str]:
    return {p.id: p.name for p in PROJECT_TYPES}
