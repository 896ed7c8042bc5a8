"""Run the DCF projection for a hand-entered state from the command line"""
import logging
import os

import matplotlib
matplotlib.use('Agg')  # headless, save-only
import matplotlib.pyplot as plt

from engine import SimulationState, Kpis, calculate_detailed_financials, cash_flow_schedule, money
from simulation_config import LOG_LEVEL, project_type_names

logger = logging.getLogger(__name__)


def build_state(spent, risk, market, investor, project_type):
    return SimulationState(
        project_type=project_type,
        project_name=project_type_names().get(project_type, project_type),
        spent=spent,
        kpis=Kpis(risk_index=risk, market_confidence=market, investor_confidence=investor),
    )


def save_schedule_plot(schedule, path):
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.bar(schedule['year'], schedule['present_value'], color='#4ECDC4', edgecolor='black', alpha=0.7, label='Present value')
    ax.plot(schedule['year'], schedule['cumulative_npv'], color='red', marker='o', linewidth=2, label='Cumulative NPV')
    ax.axhline(0, color='black', linewidth=0.8)
    ax.set_xlabel('Year')
    ax.set_title('Present Value by Year')
    ax.legend()
    ax.grid(alpha=0.3)
    plt.tight_layout()
    fig.savefig(path)
    plt.close(fig)


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description='Project final feasibility KPIs (NPV, IRR approximation, viability)')
    parser.add_argument('--spent', type=float, required=True, help='Committed capex')
    parser.add_argument('--risk', type=float, default=30.0, help='Risk index 0..100 (default: 30)')
    parser.add_argument('--market', type=float, default=50.0, help='Market confidence 0..100 (default: 50)')
    parser.add_argument('--investor', type=float, default=70.0, help='Investor confidence 0..100 (default: 70)')
    parser.add_argument('--project-type', type=str, default='CHIP_FAB', help='Project type id (default: CHIP_FAB)')
    parser.add_argument('--save-plot', action='store_true', help='Save the discounted cash flow chart to PNG')
    parser.add_argument('--output-dir', type=str, default='output', help='Directory for saved plots (default: output)')

    args = parser.parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")

    if args.spent < 0:
        parser.error('--spent must be non-negative')

    state = build_state(args.spent, args.risk, args.market, args.investor, args.project_type)
    kpis = calculate_detailed_financials(state)
    schedule = cash_flow_schedule(state)

    print(f"\n{'='*60}")
    print(f"PROJECTION: {state.project_name}")
    print(f"{'='*60}")
    print(f"Capex:           {money(state.spent)}")
    print(f"NPV:             {money(kpis.npv)}")
    print(f"IRR (approx.):   {kpis.irr:.1f}%")
    print(f"Viability Score: {kpis.viability_score:.0f}/100")
    print()
    print(schedule.to_string(index=False, float_format=lambda v: f"{v:,.2f}"))

    if args.save_plot:
        os.makedirs(args.output_dir, exist_ok=True)
        path = os.path.join(args.output_dir, f"projection_{args.project_type}.png")
        save_schedule_plot(schedule, path)
        logger.info("Saved chart to %s", os.path.abspath(path))

    return kpis


if __name__ == '__main__':
    main()
