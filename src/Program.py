import sys
import logging
import argparse
from plan_loader import load_program
from model.ProjectionData import SCENARIOS, NL
from calc.liquidation_optimizer import LiquidationOptimizer, withdrawal_objective
from render.renderers import RENDERER_REGISTRY, parse_year_range


def optimize_schedule(program, scenario: str):
    """Greedy lot schedule for the scenario; prints what it chose."""
    optimizer = LiquidationOptimizer(
        withdrawal_objective(program.solver, program.inputs, scenario),
        program.lots,
        program.inputs.years,
    )
    result = optimizer.optimize()
    print()
    print(f"Liquidation search ({scenario}): {len(result.moves)} lots scheduled in {result.rounds} rounds")
    print(f"  {'Baseline withdrawal:':<30} ${result.baseline_withdrawal:>14,.2f}")
    for scored in result.moves:
        print(f"  Sell {scored.move.lot_id:<20} in {scored.move.year}  -> ${scored.withdrawal:>14,.2f}")
    print(f"  {'Optimized withdrawal:':<30} ${result.withdrawal:>14,.2f}")
    return result.schedule


def main():
    parser = argparse.ArgumentParser(
        description='Household net-worth projection: Netherlands vs Switzerland',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Modes:
  Summary      Yearly withdrawal, taxes and ending balances (default)
  Detail       Account balances and cash-flow waterfall per year
  Taxes        Netherlands vs Switzerland taxes (one year prints the full breakdown)
  Bands        Totals grouped by withdrawal-curve band
  Liquidation  Tax lots, their sale years and the resulting gains

Without --withdrawal (and no withdrawal.fixedBase in the spec) the base
withdrawal is solved so the scenario ends the horizon near zero.

Examples:
  python src/Program.py example
  python src/Program.py example --scenario CH
  python src/Program.py example --mode Taxes --years 2028
  python src/Program.py example --mode Detail --years 2030-2040
  python src/Program.py example --withdrawal 250000
  python src/Program.py example --optimize --mode Liquidation
        """
    )
    parser.add_argument('program_name', help='Name of the program (folder in input-parameters)')
    parser.add_argument('--mode', '-m',
                        choices=list(RENDERER_REGISTRY.keys()),
                        default='Summary',
                        help='Output mode (default Summary)')
    parser.add_argument('--scenario', '-s',
                        type=str.upper,
                        choices=list(SCENARIOS),
                        default=NL,
                        help='Scenario whose accounts fill the rows and whose withdrawal is solved')
    parser.add_argument('--withdrawal', '-w',
                        type=float,
                        help='Fixed base withdrawal instead of solving for one')
    parser.add_argument('--years', '-y',
                        help='Year or range to display, e.g. 2030, 2030-2040, 2035-')
    parser.add_argument('--optimize', '-o',
                        action='store_true',
                        help='Search for a lot liquidation schedule that raises the withdrawal')
    parser.add_argument('--verbose', '-v',
                        action='store_true',
                        help='Log solver and optimizer progress')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        program = load_program(args.program_name)
    except FileNotFoundError as e:
        print(e)
        sys.exit(1)
    except ValueError as e:
        print(f"Invalid program '{args.program_name}': {e}")
        sys.exit(1)

    schedule = program.schedule
    if args.optimize:
        if not program.lots:
            print("No tax lots in this program; nothing to optimize.")
        else:
            schedule = optimize_schedule(program, args.scenario)
            program.schedule = schedule

    if args.withdrawal is None and program.fixed_withdrawal is None:
        solved = program.solve(args.scenario, schedule)
        status = "converged" if solved.converged else "did not converge"
        print(f"Solved {args.scenario} base withdrawal: ${solved.withdrawal:,.2f} "
              f"({status} after {solved.iterations} iterations)")
        data = program.project(solved.withdrawal, args.scenario, schedule)
    else:
        data = program.project(args.withdrawal, args.scenario, schedule)

    start_year = end_year = None
    if args.years:
        try:
            start_year, end_year = parse_year_range(args.years, data)
        except ValueError:
            parser.error(f"invalid year range '{args.years}'")

    renderer = RENDERER_REGISTRY[args.mode](start_year=start_year, end_year=end_year, program=program)
    renderer.render(data)


if __name__ == "__main__":
    main()
