"""Net Worth Projection Tools for MCP Server.

This module provides the tool implementations that wrap the projection
calculators and expose their data through MCP.
"""

import os
import sys
import logging
from typing import Dict, List, Optional

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from plan_loader import load_program, list_programs
from model.ProjectionData import ProjectionData, YearRow, NL, CH, SCENARIOS, check_scenario
from calc.liquidation_optimizer import LiquidationOptimizer, withdrawal_objective


logger = logging.getLogger(__name__)


def _round_fields(row: YearRow, keys: List[str]) -> dict:
    result = {}
    for key in keys:
        value = getattr(row, key)
        result[key] = round(value, 2) if isinstance(value, float) else value
    return result


class ProjectionTools:
    """Tools that wrap one program's projection for MCP access."""

    def __init__(self, base_path: str, program_name: str):
        """Load the program and project its default scenario.

        Args:
            base_path: Path to the repository root directory
            program_name: Name of the program folder in input-parameters
        """
        self.base_path = base_path
        self.program_name = program_name
        self.program = load_program(program_name, base_path)
        self.spec = self.program.spec
        self.inputs = self.program.inputs
        self.first_year = self.inputs.first_year
        self.last_year = self.inputs.last_year
        self._projections: Dict[str, ProjectionData] = {}

    def projection(self, scenario: Optional[str] = None) -> ProjectionData:
        """Projection for a scenario, computed on first use and cached."""
        scenario = check_scenario(scenario or NL)
        if scenario not in self._projections:
            self._projections[scenario] = self.program.project(scenario=scenario)
        return self._projections[scenario]

    def _row(self, year: int, scenario: Optional[str] = None) -> Optional[YearRow]:
        return self.projection(scenario).get_year(year)

    def _year_error(self, year: int) -> dict:
        return {"error": f"Year {year} is not in the planning horizon ({self.first_year}-{self.last_year})"}

    def get_program_overview(self) -> dict:
        """Get an overview of the household program."""
        inputs = self.inputs
        return {
            "program_name": self.program_name,
            "planning_horizon": {
                "first_year": inputs.first_year,
                "last_year": inputs.last_year,
                "years": len(inputs.years),
                "birth_year": inputs.birth_year,
                "ages": f"{inputs.age_in(inputs.first_year)}-{inputs.age_in(inputs.last_year)}",
            },
            "opening_balances": {
                "notes": inputs.note_balance,
                "equities": inputs.equity_balance,
                "margin": inputs.margin_balance,
                "secondary": inputs.secondary_balance,
                "retirement_primary": inputs.retirement_primary_balance,
                "retirement_spouse": inputs.retirement_spouse_balance,
            },
            "rates": {
                "note_rate": inputs.note_rate,
                "dividend_yield": inputs.dividend_yield,
                "equity_growth_rate": inputs.equity_growth_rate,
                "margin_rate": inputs.margin_rate,
                "secondary_return_rate": inputs.secondary_rate(),
                "retirement_growth_rate": inputs.retirement_growth_rate,
            },
            "relocation": {
                "move_year": inputs.move_year,
                "usd_chf": inputs.usd_chf,
                "municipal_multiplier": inputs.municipal_multiplier,
            },
            "withdrawal": {
                "margin_share": inputs.margin_withdrawal_share,
                "fixed_base": self.program.fixed_withdrawal,
                "curve": [
                    {"min_age": b.min_age, "max_age": b.max_age, "multiplier": b.multiplier}
                    for b in inputs.withdrawal_curve
                ],
            },
            "tax_lots": len(self.program.lots),
            "liquidation_schedule": self.program.schedule.to_spec(self.program.lots),
        }

    def list_available_years(self) -> dict:
        """List all projected years and which regime each trajectory pays."""
        years = list(self.inputs.years)
        move_year = self.inputs.move_year
        swiss_years = [y for y in years if move_year is not None and y >= move_year]
        data = self.projection(NL)
        return {
            "years": years,
            "total_years": len(years),
            "move_year": move_year,
            "netherlands_only_years": [y for y in years if y not in swiss_years],
            "swiss_years": swiss_years,
            "depletion_year_nl": data.depletion_year_nl,
            "depletion_year_ch": data.depletion_year_ch,
        }

    def get_year_detail(self, year: int, scenario: Optional[str] = None) -> dict:
        """Balances, income and waterfall for one year of a scenario."""
        row = self._row(year, scenario)
        if row is None:
            return self._year_error(year)
        data = self.projection(scenario)
        return {
            "year": year,
            "scenario": data.scenario,
            "age": row.age,
            "base_withdrawal": round(data.base_withdrawal, 2),
            "balances": _round_fields(row, [
                "note_balance", "equity_balance", "margin_balance", "secondary_balance",
                "retirement_primary_balance", "retirement_spouse_balance", "financing_cap",
            ]),
            "income": _round_fields(row, [
                "note_interest", "dividends", "equity_growth", "margin_interest", "secondary_earnings",
                "benefit_primary", "benefit_spouse", "retirement_withdrawal", "total_income",
            ]),
            "waterfall": _round_fields(row, [
                "tax_paid", "withdrawal", "net_cash_flow", "margin_paydown", "surplus_to_secondary",
                "margin_draw", "secondary_draw", "uncovered_shortfall", "cap_secondary_draw",
                "forced_equity_sale", "forced_note_sale",
            ]),
            "liquidation": _round_fields(row, [
                "lots_sold", "liquidation_proceeds", "liquidation_gain", "capital_gains_tax",
            ]),
            "ending_balance_nl": round(row.ending_balance_nl, 2),
            "ending_balance_ch": round(row.ending_balance_ch, 2),
            "health": row.health(self._row(year - 1, scenario)),
        }

    def get_tax_comparison(self, year: Optional[int] = None, scenario: Optional[str] = None) -> dict:
        """Netherlands vs Switzerland tax for one year or every year."""
        data = self.projection(scenario)
        if year is not None:
            row = data.get_year(year)
            if row is None:
                return self._year_error(year)
            return {
                "year": year,
                "netherlands": _round_fields(row, [
                    "nl_deemed_or_actual", "nl_margin_deduction", "nl_allowance", "nl_taxable",
                    "nl_tax_rate", "nl_tax", "nl_ftc_credit", "nl_loss_carryforward",
                ]),
                "switzerland": _round_fields(row, [
                    "ch_applies", "ch_net_wealth_usd", "ch_net_wealth_chf", "ch_cantonal_basic_tax",
                    "ch_municipal_tax", "ch_total_wealth_tax_chf", "ch_wealth_tax_usd",
                    "ch_investment_income", "ch_income_tax", "ch_total_tax",
                ]),
                "difference_ch_minus_nl": round(row.ch_total_tax - row.nl_tax, 2),
            }

        return {
            "years": {
                r.year: {
                    "nl_tax": round(r.nl_tax, 2),
                    "ch_total_tax": round(r.ch_total_tax, 2),
                    "ch_applies": r.ch_applies,
                }
                for r in data.rows
            },
            "total_tax_nl": round(data.total_tax_nl, 2),
            "total_tax_ch": round(data.total_tax_ch, 2),
            "difference_ch_minus_nl": round(data.total_tax_ch - data.total_tax_nl, 2),
        }

    def get_lifetime_totals(self, scenario: Optional[str] = None) -> dict:
        """Lifetime totals and terminal balances of a scenario's projection."""
        data = self.projection(scenario)
        return {
            "scenario": data.scenario,
            "base_withdrawal": round(data.base_withdrawal, 2),
            "lifetime_totals": {
                "income": round(data.total_income, 2),
                "tax_nl": round(data.total_tax_nl, 2),
                "tax_ch": round(data.total_tax_ch, 2),
                "capital_gains_tax": round(data.total_capital_gains_tax, 2),
                "withdrawal": round(data.total_withdrawal, 2),
                "average_withdrawal": round(data.average_withdrawal, 2),
                "uncovered_shortfall": round(data.total_uncovered, 2),
            },
            "ending_balance_nl": round(data.ending_nl, 2),
            "ending_balance_ch": round(data.ending_ch, 2),
            "depletion_year_nl": data.depletion_year_nl,
            "depletion_year_ch": data.depletion_year_ch,
        }

    def get_band_summary(self, scenario: Optional[str] = None) -> dict:
        """Totals grouped by withdrawal-curve band."""
        data = self.projection(scenario)
        bands = data.band_summaries(self.inputs.withdrawal_curve, self.inputs.birth_year)
        return {
            "scenario": data.scenario,
            "bands": [
                {
                    "label": b.label,
                    "start_year": b.start_year,
                    "end_year": b.end_year,
                    "total_income": round(b.total_income, 2),
                    "total_tax_nl": round(b.total_tax_nl, 2),
                    "total_tax_ch": round(b.total_tax_ch, 2),
                    "total_withdrawal": round(b.total_withdrawal, 2),
                    "average_withdrawal": round(b.average_withdrawal, 2),
                    "ending_nl": round(b.ending_nl, 2),
                    "ending_ch": round(b.ending_ch, 2),
                }
                for b in bands
            ],
        }

    def solve_withdrawal(self, scenario: Optional[str] = None, optimize: bool = False) -> dict:
        """Solve the sustainable base withdrawal, optionally optimizing lot sales first."""
        scenario = check_scenario(scenario or NL)
        program = self.program
        result = {"scenario": scenario}
        schedule = program.schedule
        if optimize and program.lots:
            optimized = LiquidationOptimizer(
                withdrawal_objective(program.solver, self.inputs, scenario),
                program.lots,
                self.inputs.years,
            ).optimize()
            schedule = optimized.schedule
            result["optimization"] = {
                "baseline_withdrawal": round(optimized.baseline_withdrawal, 2),
                "optimized_withdrawal": round(optimized.withdrawal, 2),
                "rounds": optimized.rounds,
                "moves": [
                    {"lot_id": m.move.lot_id, "year": m.move.year, "withdrawal": round(m.withdrawal, 2)}
                    for m in optimized.moves
                ],
                "schedule": schedule.to_spec(program.lots),
            }
        solved = program.solve(scenario, schedule)
        result.update({
            "withdrawal": round(solved.withdrawal, 2),
            "terminal_balance": round(solved.terminal_balance, 2),
            "iterations": solved.iterations,
            "converged": solved.converged,
        })
        return result

    def search_projection_data(self, query: str, year: Optional[int] = None,
                               scenario: Optional[str] = None) -> dict:
        """Search for specific projection fields based on a query."""
        query_lower = query.lower()

        term_mapping = {
            "note": ["note_balance", "note_interest"],
            "interest": ["note_interest", "margin_interest"],
            "dividend": ["dividends"],
            "equity": ["equity_balance", "equity_growth"],
            "margin": ["margin_balance", "margin_interest", "margin_draw", "margin_paydown"],
            "secondary": ["secondary_balance", "secondary_earnings", "secondary_draw"],
            "retirement": ["retirement_primary_balance", "retirement_spouse_balance", "retirement_withdrawal"],
            "benefit": ["benefit_primary", "benefit_spouse"],
            "box 3": ["nl_taxable", "nl_tax"],
            "netherlands": ["nl_taxable", "nl_tax"],
            "dutch": ["nl_taxable", "nl_tax"],
            "nl": ["nl_tax"],
            "carryforward": ["nl_loss_carryforward"],
            "swiss": ["ch_wealth_tax_usd", "ch_income_tax", "ch_total_tax"],
            "switzerland": ["ch_wealth_tax_usd", "ch_income_tax", "ch_total_tax"],
            "zurich": ["ch_wealth_tax_usd", "ch_income_tax", "ch_total_tax"],
            "wealth tax": ["ch_cantonal_basic_tax", "ch_municipal_tax", "ch_wealth_tax_usd"],
            "capital gain": ["liquidation_gain", "capital_gains_tax"],
            "lot": ["lots_sold", "liquidation_proceeds", "liquidation_gain"],
            "sale": ["liquidation_proceeds", "forced_equity_sale", "forced_note_sale"],
            "cap": ["financing_cap", "cap_secondary_draw", "forced_equity_sale", "forced_note_sale"],
            "shortfall": ["uncovered_shortfall", "margin_draw", "secondary_draw"],
            "withdrawal": ["withdrawal", "curve_multiplier"],
            "income": ["total_income"],
            "tax": ["tax_paid", "nl_tax", "ch_total_tax"],
            "balance": ["ending_balance_nl", "ending_balance_ch"],
            "net worth": ["ending_balance_nl", "ending_balance_ch"],
        }

        matched_keys = []
        for term, keys in term_mapping.items():
            if term in query_lower:
                matched_keys.extend(k for k in keys if k not in matched_keys)

        if not matched_keys:
            return {
                "query": query,
                "message": "No matching projection fields found. Try terms like: margin, notes, equity, "
                           "dividend, Box 3, Swiss, wealth tax, capital gain, withdrawal, balance, shortfall, etc."
            }

        data = self.projection(scenario)
        if year is not None:
            row = data.get_year(year)
            if row is None:
                return self._year_error(year)
            return {"year": year, "query": query, "results": _round_fields(row, matched_keys)}

        return {
            "query": query,
            "years": {r.year: _round_fields(r, matched_keys) for r in data.rows},
        }


class MultiProgramTools:
    """Manager for multiple household programs.

    Discovers all available programs and caches their projections,
    allowing queries to specify which program to use.
    """

    def __init__(self, base_path: str, default_program: Optional[str] = None):
        self.base_path = base_path
        self.programs: Dict[str, ProjectionTools] = {}
        self.default_program = default_program
        self._discover_programs()

    def _discover_programs(self):
        """Discover and load all available programs."""
        for name in list_programs(self.base_path):
            try:
                self.programs[name] = ProjectionTools(self.base_path, name)
            except (OSError, ValueError, KeyError) as e:
                logger.warning("Failed to load program '%s': %s", name, e)

        if self.default_program is None and self.programs:
            self.default_program = list(self.programs.keys())[0]

    def _get_program(self, program: Optional[str] = None, require_explicit: bool = False) -> ProjectionTools:
        """Get the specified program or default.

        Args:
            program: Program name to use, or None for default
            require_explicit: If True, raise error when program not specified and multiple exist
        """
        if program is None and len(self.programs) > 1 and require_explicit:
            available = list(self.programs.keys())
            raise ValueError(
                f"Multiple programs available: {available}. Please specify which program to query."
            )

        program_name = program or self.default_program
        if program_name not in self.programs:
            available = list(self.programs.keys())
            raise ValueError(
                f"Program '{program_name}' not found. Available programs: {available}"
            )
        return self.programs[program_name]

    def _tag(self, result: dict, program: Optional[str]) -> dict:
        result["program"] = program or self.default_program
        return result

    def list_programs(self) -> dict:
        """List all available programs."""
        programs_info = {}
        for name, tools in self.programs.items():
            programs_info[name] = {
                "first_year": tools.first_year,
                "last_year": tools.last_year,
                "move_year": tools.inputs.move_year,
                "tax_lots": len(tools.program.lots),
            }
        return {
            "available_programs": list(self.programs.keys()),
            "default_program": self.default_program,
            "programs_info": programs_info,
        }

    def reload_programs(self) -> dict:
        """Reload all programs from disk, refreshing the cache."""
        old_programs = set(self.programs.keys())
        self.programs.clear()
        self.default_program = None
        self._discover_programs()
        new_programs = set(self.programs.keys())
        return {
            "status": "success",
            "message": f"Reloaded {len(self.programs)} programs",
            "programs_loaded": list(self.programs.keys()),
            "default_program": self.default_program,
            "changes": {
                "added": sorted(new_programs - old_programs),
                "removed": sorted(old_programs - new_programs),
                "reloaded": sorted(old_programs & new_programs),
            },
        }

    def get_program_overview(self, program: Optional[str] = None) -> dict:
        return self._tag(self._get_program(program, require_explicit=True).get_program_overview(), program)

    def list_available_years(self, program: Optional[str] = None) -> dict:
        return self._tag(self._get_program(program, require_explicit=True).list_available_years(), program)

    def get_year_detail(self, year: int, scenario: Optional[str] = None, program: Optional[str] = None) -> dict:
        result = self._get_program(program, require_explicit=True).get_year_detail(year, scenario)
        return self._tag(result, program)

    def get_tax_comparison(self, year: Optional[int] = None, scenario: Optional[str] = None,
                           program: Optional[str] = None) -> dict:
        result = self._get_program(program, require_explicit=True).get_tax_comparison(year, scenario)
        return self._tag(result, program)

    def get_lifetime_totals(self, scenario: Optional[str] = None, program: Optional[str] = None) -> dict:
        result = self._get_program(program, require_explicit=True).get_lifetime_totals(scenario)
        return self._tag(result, program)

    def get_band_summary(self, scenario: Optional[str] = None, program: Optional[str] = None) -> dict:
        result = self._get_program(program, require_explicit=True).get_band_summary(scenario)
        return self._tag(result, program)

    def solve_withdrawal(self, scenario: Optional[str] = None, optimize: bool = False,
                         program: Optional[str] = None) -> dict:
        result = self._get_program(program, require_explicit=True).solve_withdrawal(scenario, optimize)
        return self._tag(result, program)

    def search_projection_data(self, query: str, year: Optional[int] = None, scenario: Optional[str] = None,
                               program: Optional[str] = None) -> dict:
        result = self._get_program(program, require_explicit=True).search_projection_data(query, year, scenario)
        return self._tag(result, program)

    def compare_programs(self, program1: str, program2: str, metrics: Optional[List[str]] = None,
                         scenario: Optional[str] = None) -> dict:
        """Compare two programs and report which leaves the household better off.

        Args:
            program1: First program name to compare
            program2: Second program name to compare
            metrics: Optional subset of metric keys. If None, compares all.
            scenario: Scenario whose projections are compared (default NL)
        """
        if program1 not in self.programs:
            return {"error": f"Program '{program1}' not found. Available: {list(self.programs.keys())}"}
        if program2 not in self.programs:
            return {"error": f"Program '{program2}' not found. Available: {list(self.programs.keys())}"}

        data1 = self.programs[program1].projection(scenario)
        data2 = self.programs[program2].projection(scenario)

        def compare_metric(val1: float, val2: float, higher_is_better: bool = True) -> dict:
            diff = val2 - val1
            if val1 != 0:
                pct_diff = (diff / abs(val1)) * 100
            else:
                pct_diff = 100 if val2 > 0 else (-100 if val2 < 0 else 0)
            if higher_is_better:
                winner = program1 if val1 > val2 else (program2 if val2 > val1 else "tie")
            else:
                winner = program1 if val1 < val2 else (program2 if val2 < val1 else "tie")
            return {
                program1: round(val1, 2),
                program2: round(val2, 2),
                "difference": round(diff, 2),
                "percent_difference": round(pct_diff, 1),
                "better": winner,
                "higher_is_better": higher_is_better,
            }

        all_metrics = {
            "base_withdrawal": ("Base Withdrawal", data1.base_withdrawal, data2.base_withdrawal, True),
            "total_withdrawal": ("Lifetime Withdrawal", data1.total_withdrawal, data2.total_withdrawal, True),
            "lifetime_income": ("Lifetime Income", data1.total_income, data2.total_income, True),
            "tax_nl": ("Lifetime Netherlands Tax", data1.total_tax_nl, data2.total_tax_nl, False),
            "tax_ch": ("Lifetime Relocation Tax", data1.total_tax_ch, data2.total_tax_ch, False),
            "capital_gains_tax": ("Lifetime Capital Gains Tax",
                                  data1.total_capital_gains_tax, data2.total_capital_gains_tax, False),
            "ending_nl": ("Ending Balance NL", data1.ending_nl, data2.ending_nl, True),
            "ending_ch": ("Ending Balance CH", data1.ending_ch, data2.ending_ch, True),
        }

        if metrics:
            selected = {k: v for k, v in all_metrics.items() if k in metrics}
            if not selected:
                return {"error": f"No valid metrics specified. Available metrics: {list(all_metrics.keys())}"}
        else:
            selected = all_metrics

        comparison = {"scenario": data1.scenario, "metrics": {}}
        wins = {program1: 0, program2: 0, "tie": 0}
        for key, (description, val1, val2, higher_is_better) in selected.items():
            result = compare_metric(val1, val2, higher_is_better)
            comparison["metrics"][key] = {"description": description, **result}
            wins[result["better"]] += 1

        if wins[program1] > wins[program2]:
            overall = program1
        elif wins[program2] > wins[program1]:
            overall = program2
        else:
            overall = "tie"

        comparison["summary"] = {
            "metrics_compared": len(selected),
            "wins": {program1: wins[program1], program2: wins[program2], "tied": wins["tie"]},
            "overall_better": overall,
        }
        if overall == "tie":
            comparison["recommendation"] = (
                f"Both programs are roughly equivalent, each winning {wins[program1]} metrics."
            )
        else:
            loser = program2 if overall == program1 else program1
            comparison["recommendation"] = (
                f"'{overall}' appears better overall, winning {wins[overall]} of {len(selected)} "
                f"metrics compared to {wins[loser]} for '{loser}'."
            )
        return comparison
