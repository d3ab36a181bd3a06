"""
Financial Plan Projector - command line entry point.

Loads a plan (JSON file, share link or defaults), runs the projections and
prints a summary; optionally writes the CSV ledger, the state JSON, a share
link, chart HTML files and a comparison against scenario overrides.
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from charts import (
    create_expense_chart, create_gap_chart, create_income_chart, create_net_worth_chart,
    create_tax_breakdown_chart
)
from codec import decode_share_fragment, encode_share_fragment
from config_utils import configure_logging, get_default_state, load_app_config
from export import generate_csv_export
from io_utils import create_state_download_json, format_currency, load_state_json
from models import PlanState
from scenarios import (
    PlanProjections, Scenario, apply_scenario_overrides, calculate_plan_projections,
    compare_scenarios
)
from tax_ladders import load_default_tables


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Project income, expenses, taxes and net worth to retirement',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py plan.json
  python main.py plan.json --csv projections.csv --print-share
  python main.py --share "#share=N4Ig..."
  python main.py plan.json --compare early_retirement.json
        """
    )
    parser.add_argument('state_file', nargs='?', help='Plan state JSON (storage export format)')
    parser.add_argument('--share', help='Load the plan from a share link or #share= fragment')
    parser.add_argument('--csv', dest='csv_out', help='Write the CSV ledger to this path')
    parser.add_argument('--json', dest='json_out', help='Write the plan state JSON to this path')
    parser.add_argument('--print-share', action='store_true', help='Print a share fragment')
    parser.add_argument('--charts', dest='charts_dir', help='Write chart HTML files to this directory')
    parser.add_argument('--compare', dest='overrides_file',
                        help='JSON overrides to compare against the base plan')
    parser.add_argument('--tax-data', dest='tax_data_dir', help='Directory with tax ladder CSVs')
    parser.add_argument('--config', dest='config_file', help='Application config JSON')
    parser.add_argument('--log-level', help='Logging level (DEBUG, INFO, WARNING, ...)')
    return parser


def load_plan(args: argparse.Namespace) -> Optional[PlanState]:
    if args.share:
        state = decode_share_fragment(args.share)
        if state is None:
            print("Share link could not be decoded", file=sys.stderr)
        return state
    if args.state_file:
        try:
            return load_state_json(args.state_file)
        except (OSError, ValueError) as e:
            print(f"Could not load {args.state_file}: {e}", file=sys.stderr)
            return None
    logger.info("[CLI] No plan given, using defaults")
    return get_default_state()


def print_summary(projections: PlanProjections) -> None:
    profile = projections.state.profile
    print(f"Plan: age {profile.age} to {profile.retirement_age} "
          f"({profile.years_to_retirement} years), {profile.location}, {profile.filing_status}")

    income = projections.income.summary
    expenses = projections.expenses.summary
    print(f"  Income, year 1:        {format_currency(income['current_year_total_nominal'], 1)}")
    print(f"  Income, lifetime (PV): {format_currency(income['lifetime_total_pv'], 1)}")
    print(f"  Expenses, year 1:      {format_currency(expenses['current_year_total_nominal'], 1)}")

    if projections.gap is not None:
        gap = projections.gap.summary
        print(f"  Lifetime taxes:        {format_currency(gap['lifetime_taxes_nominal'], 1)}")
        print(f"  Net worth at retirement: "
              f"{format_currency(gap['retirement_net_worth_nominal'], 2)} nominal, "
              f"{format_currency(gap['retirement_net_worth_pv'], 2)} today's dollars")
        if gap['first_negative_cash_year'] is not None:
            print(f"  Cash first goes negative in year {gap['first_negative_cash_year']}")

    if projections.warnings:
        print("Warnings:")
        for key, message in sorted(projections.warnings.items()):
            print(f"  {key}: {message}")


def write_charts(projections: PlanProjections, charts_dir: str) -> None:
    out = Path(charts_dir)
    out.mkdir(parents=True, exist_ok=True)
    figures = {
        'income.html': create_income_chart(projections.income),
        'expenses.html': create_expense_chart(projections.expenses),
    }
    if projections.gap is not None:
        figures['net_worth.html'] = create_net_worth_chart(projections.gap)
        figures['taxes.html'] = create_tax_breakdown_chart(projections.gap)
        figures['gap.html'] = create_gap_chart(projections.gap)
    for name, fig in figures.items():
        fig.write_html(str(out / name))
    print(f"Wrote {len(figures)} charts to {out}")


def print_comparison(base: PlanProjections, overrides_file: str, table) -> None:
    with open(overrides_file, 'r') as f:
        overrides = json.load(f)
    alternative = calculate_plan_projections(
        apply_scenario_overrides(base.state, overrides), table)
    comparison = compare_scenarios([Scenario('1', 'Base', base),
                                    Scenario('2', Path(overrides_file).stem, alternative)])
    if comparison is None:
        print("Nothing to compare")
        return
    differences = comparison['scenarios'][1]['differences']
    print(f"Compared with {Path(overrides_file).stem}:")
    for metric, diff in differences.items():
        if diff['percentage'] is None:
            print(f"  {metric}: {diff['absolute']:+.2f} pts")
        else:
            print(f"  {metric}: {diff['absolute']:+,} ({diff['percentage']:+.2f}%)")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = load_app_config(args.config_file)
    if args.tax_data_dir:
        config['tax_data_dir'] = args.tax_data_dir
    configure_logging(args.log_level or config['log_level'])

    state = load_plan(args)
    if state is None:
        return 1

    try:
        table = load_default_tables(config)
    except (OSError, ValueError) as e:
        logger.warning(f"[CLI] Tax tables unavailable, projecting without taxes: {e}")
        table = None
    projections = calculate_plan_projections(state, table)
    print_summary(projections)

    if args.csv_out:
        csv_text = generate_csv_export(projections.income, projections.expenses, projections.gap,
                                       state.investments_debt, state.profile,
                                       state.income_streams)
        with open(args.csv_out, 'w', newline='') as f:
            f.write(csv_text)
        print(f"Wrote CSV export to {args.csv_out}")

    if args.json_out:
        with open(args.json_out, 'w') as f:
            f.write(create_state_download_json(state))
        print(f"Wrote plan state to {args.json_out}")

    if args.print_share:
        print(encode_share_fragment(state))

    if args.charts_dir:
        write_charts(projections, args.charts_dir)

    if args.overrides_file:
        print_comparison(projections, args.overrides_file, table)

    return 0


if __name__ == "__main__":
    sys.exit(main())
