"""
Feasibility session orchestrator.

Owns one SimulationState and sequences the study: start, decisions per
module, a random market event on every module transition, then the final
projection and committee report. Provider failures are logged and recorded
in `last_error`; the session stays where it was.
"""

import logging
from typing import List, Optional

import engine
from engine import (
    DecisionError,
    MarketEvent,
    ModuleType,
    ProjectContext,
    ProjectDecision,
    SimulationState,
)
from gemini_service import ContentProvider, ContentProviderError

logger = logging.getLogger(__name__)


class FeasibilitySession:
    def __init__(self, provider: ContentProvider, state: Optional[SimulationState] = None):
        self.provider = provider
        self.state = state if state else engine.new_state()
        self.context: Optional[ProjectContext] = None
        self.decisions: List[ProjectDecision] = []
        self.active_event: Optional[MarketEvent] = None
        self.final_report: str = ""
        self.last_error: Optional[str] = None

    # ---------------- lifecycle ----------------

    def start(self, project_type: str) -> bool:
        """Generate the project brief and the technical decisions"""
        self.last_error = None
        try:
            context = self.provider.generate_project_context(project_type)
            decisions = self.provider.generate_module_decisions(ModuleType.TECHNICAL, context)
        except ContentProviderError as e:
            self._record_failure("Project start failed", e)
            return False

        self.state = engine.start_project(self.state, project_type, context)
        self.context = context
        self.decisions = decisions
        logger.info("Started %s project %r with %d decisions",
                    project_type, context.project_name, len(decisions))
        return True

    def select_option(self, decision_id: str, option_id: str) -> SimulationState:
        decision = self._find_decision(decision_id)
        option = decision.find_option(option_id)
        if option is None:
            raise DecisionError(f"Unknown option {option_id} for decision {decision_id}")
        self.state = engine.apply_decision(self.state, decision_id, option)
        return self.state

    def pending_decisions(self) -> List[ProjectDecision]:
        return [d for d in self.decisions if engine.answered_option(self.state, d.id) is None]

    def can_advance(self) -> bool:
        if self.state.current_module in (ModuleType.INIT, ModuleType.FINAL_REPORT):
            return False
        return not self.pending_decisions()

    def trigger_random_event(self) -> Optional[MarketEvent]:
        """Inject one market event; a failure leaves the state untouched"""
        self.active_event = None
        try:
            event = self.provider.generate_random_event(self.state)
        except ContentProviderError as e:
            self._record_failure("Event generation failed", e)
            return None

        self.state = engine.apply_event(self.state, event)
        self.active_event = event
        logger.info("Market event %r (%s)", event.title, event.impact_type.value)
        return event

    def next_module(self) -> bool:
        """Advance to the next module, or finalize after the last one

        Returns:
            True if the session moved to a new module
        """
        if not self.can_advance():
            return False
        next_mod = engine.next_module_after(self.state.current_module)
        if next_mod is None:
            return False

        self.last_error = None

        if next_mod == ModuleType.FINAL_REPORT:
            self.trigger_random_event()
            self.state = engine.finalize(self.state)
            self.decisions = []
            self._request_report()
            return True

        # Load first so a failed transition can be retried without a second event
        try:
            decisions = self.provider.generate_module_decisions(next_mod, self.context)
        except ContentProviderError as e:
            self._record_failure("Module transition failed", e)
            return False

        self.trigger_random_event()
        self.state = engine.advance_module(self.state, next_mod)
        self.decisions = decisions
        return True

    def retry_report(self) -> bool:
        if not self.state.finalized:
            return False
        self.last_error = None
        return self._request_report()

    # ---------------- internals ----------------

    def _request_report(self) -> bool:
        try:
            self.final_report = self.provider.evaluate_final_report(self.state)
        except ContentProviderError as e:
            self._record_failure("Final report failed", e)
            return False
        return True

    def _find_decision(self, decision_id: str) -> ProjectDecision:
        for decision in self.decisions:
            if decision.id == decision_id:
                return decision
        raise DecisionError(f"Unknown decision {decision_id} in module {self.state.current_module.value}")

    def _record_failure(self, what: str, error: Exception):
        logger.exception("%s: %s", what, error)
        self.last_error = f"{what}: {error}"
