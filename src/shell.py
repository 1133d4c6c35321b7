#!/usr/bin/env python3
"""Interactive command shell for querying net-worth projections.

This module provides an interactive shell that loads a program at
startup, projects it, and allows querying any field(s) from the yearly
rows across a specified year range.

Usage:
    python src/shell.py [program_name]

Commands:
    get <fields> [year_or_range]  - Query fields from the yearly rows
    fields [field]                - List all available fields
    years                         - Show available year range
    summary                       - Show lifetime totals
    render <mode> [year_or_range] - Render a report
    solve [NL|CH]                 - Solve the sustainable base withdrawal
    withdrawal <amount>           - Re-project with a fixed base withdrawal
    scenario NL|CH                - Switch the target scenario
    load <program_name>           - Load a program
    help                          - Show help message
    exit/quit                     - Exit the shell

Examples:
    > get withdrawal, ending_balance_nl
    > get nl_tax, ch_total_tax 2028-2035
    > solve CH
    > render Taxes 2030
"""

import sys
import os
import cmd
import readline
from dataclasses import fields as dataclass_fields

# Configure readline for tab completion
try:
    if 'libedit' in readline.__doc__:
        readline.parse_and_bind("bind ^I rl_complete")
    else:
        readline.parse_and_bind("tab: complete")
except (AttributeError, TypeError):
    pass  # readline might not be fully available

# Add src directory to path for imports
sys.path.insert(0, os.path.dirname(__file__))

from plan_loader import Program, load_program, list_programs
from model.ProjectionData import ProjectionData, YearRow, NL, SCENARIOS, check_scenario
from model.field_metadata import FIELD_METADATA, get_short_name, get_description
from render.renderers import RENDERER_REGISTRY, parse_year_range


NON_SUMMABLE_FIELDS = ('year', 'age', 'curve_multiplier', 'ch_applies', 'nl_tax_rate', 'financing_cap')


def get_row_fields() -> list:
    """Get list of all field names from the YearRow dataclass."""
    return [f.name for f in dataclass_fields(YearRow)]


def format_value(value) -> str:
    """Format a value for display."""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    elif isinstance(value, float):
        if value == 0:
            return "$0.00"
        elif abs(value) < 1:
            return f"{value:.4f}"
        else:
            return f"${value:,.2f}"
    elif isinstance(value, int):
        return str(value)
    else:
        return str(value)


class ProjectionShell(cmd.Cmd):
    """Interactive shell for querying projection data."""

    intro = """
Net Worth Projection Shell
==========================
Type 'help' for available commands.
Type 'fields' to see available data fields.
Type 'exit' or 'quit' to exit.
"""
    prompt = '> '

    def __init__(self, program: Program = None, scenario: str = NL, base_path: str = None):
        super().__init__()
        self.program = program
        self.scenario = check_scenario(scenario)
        self.base_path = base_path
        self.data: ProjectionData = None
        self.available_fields = get_row_fields()
        if program is not None:
            self._project()
        self._update_intro()

    def preloop(self):
        """Set up readline before entering the command loop."""
        try:
            readline.set_completer_delims(' \t\n,')
        except (AttributeError, TypeError):
            pass

    def _project(self, base_withdrawal: float = None):
        """(Re)run the projection for the current scenario."""
        self.data = self.program.project(base_withdrawal, self.scenario)

    def _update_intro(self):
        if self.data is not None:
            self.intro = f"""
Net Worth Projection Shell
==========================
Program: {self.program.name}
Years: {self.data.first_year} - {self.data.last_year}
Scenario: {self.scenario}  Base withdrawal: {format_value(self.data.base_withdrawal)}

Type 'help' for available commands.
Type 'fields' to see available data fields.
Type 'exit' or 'quit' to exit.
"""
        else:
            self.intro = """
Net Worth Projection Shell
==========================
No program loaded. Use 'load <program_name>' to get started.

Type 'help' for available commands.
Type 'exit' or 'quit' to exit.
"""

    def _require_plan(self) -> bool:
        """Check if a program is loaded. Returns True if loaded, False otherwise."""
        if self.data is None:
            print("No program loaded. Use 'load <program_name>' first.")
            return False
        return True

    def _split_year_range(self, parts: list) -> tuple:
        """Split a trailing year or range off the argument list.

        Returns (remaining parts, (first_year, last_year) or None).
        """
        if not parts:
            return parts, None
        candidate = parts[-1]
        try:
            first_year, last_year = parse_year_range(candidate, self.data)
        except ValueError:
            return parts, None
        if '-' not in candidate and not 1900 <= first_year <= 2200:
            return parts, None
        return parts[:-1], (first_year, last_year)

    def do_get(self, arg: str):
        """Query field(s) from the yearly rows.

        Usage: get <fields> [year_or_range]

        Arguments:
            fields        - Comma-separated list of field names
            year_or_range - Optional: single year (2030) or range (2030-2035)
                            If range end is omitted (2030-), runs to the last year

        Examples:
            get withdrawal
            get nl_tax, ch_total_tax
            get ending_balance_ch 2030-2040
        """
        if not self._require_plan():
            return

        if not arg.strip():
            print("Error: Please specify at least one field to query.")
            print("Usage: get <fields> [year_or_range]")
            return

        field_parts, year_range = self._split_year_range(arg.strip().split())
        field_names = [f.strip() for f in ' '.join(field_parts).split(',') if f.strip()]
        if not field_names:
            print("Error: No valid field names provided.")
            return

        invalid_fields = [f for f in field_names if f not in self.available_fields]
        if invalid_fields:
            print(f"Error: Unknown field(s): {', '.join(invalid_fields)}")
            print("Use 'fields' command to see available field names.")
            return

        first_year, last_year = year_range or (self.data.first_year, self.data.last_year)
        if first_year > last_year:
            print(f"Error: First year ({first_year}) cannot be greater than last year ({last_year})")
            return
        if first_year < self.data.first_year or last_year > self.data.last_year:
            print(f"Warning: Requested range extends beyond projection ({self.data.first_year}-{self.data.last_year})")

        header = ["Year"] + [get_short_name(f) for f in field_names]
        col_widths = [max(len(h), 6) for h in header]

        rows = []
        selected = []
        for year in range(first_year, last_year + 1):
            row_data = self.data.get_year(year)
            if row_data is None:
                continue
            selected.append(row_data)
            row = [str(year)] + [format_value(getattr(row_data, f)) for f in field_names]
            rows.append(row)
            for i, cell in enumerate(row):
                col_widths[i] = max(col_widths[i], len(cell))

        if not rows:
            print(f"No data available for years {first_year}-{last_year}")
            return

        header_line = "  ".join(h.rjust(col_widths[i]) for i, h in enumerate(header))
        print()
        print(header_line)
        print("-" * len(header_line))
        for row in rows:
            print("  ".join(cell.rjust(col_widths[i]) for i, cell in enumerate(row)))

        if len(rows) > 1:
            print("-" * len(header_line))
            total_row = ["Total"]
            for field_name in field_names:
                if field_name in NON_SUMMABLE_FIELDS or 'balance' in field_name:
                    total_row.append("-")
                else:
                    total_row.append(format_value(float(sum(getattr(r, field_name) for r in selected))))
            print("  ".join(cell.rjust(col_widths[i]) for i, cell in enumerate(total_row)))
        print()

    def do_fields(self, arg: str):
        """List all available fields that can be queried.

        Usage: fields [field_name]
        """
        if arg.strip():
            field_name = arg.strip()
            if field_name not in self.available_fields:
                print(f"Error: Unknown field '{field_name}'")
                print("Use 'fields' without arguments to see all available fields.")
                return
            info = FIELD_METADATA.get(field_name)
            print(f"\n{field_name}:")
            if info:
                print(f"  Short name: {info.short_name}")
                print(f"  Description: {info.description}")
            else:
                print("  No metadata available")
            print()
            return

        print("\nAvailable fields in YearRow:")
        print("=" * 70)
        for field in self.available_fields:
            print(f"  {field:<28} [{get_short_name(field):<18}] {get_description(field)}")
        print()

    def complete_fields(self, text, line, begidx, endidx):
        if not text:
            return self.available_fields
        text_lower = text.lower()
        return [f for f in self.available_fields if text_lower in f.lower()]

    def do_years(self, arg: str):
        """Show the projection's year range."""
        if not self._require_plan():
            return
        inputs = self.program.inputs
        print("\nProjection Year Range:")
        print(f"  First year: {self.data.first_year} (age {inputs.age_in(self.data.first_year)})")
        print(f"  Last year: {self.data.last_year} (age {inputs.age_in(self.data.last_year)})")
        if inputs.move_year is not None:
            print(f"  Move to Switzerland: {inputs.move_year}")
        else:
            print("  Move to Switzerland: never")
        print()

    def do_summary(self, arg: str):
        """Show lifetime totals of the projection."""
        if not self._require_plan():
            return
        d = self.data
        print(f"\nLifetime Summary for '{self.program.name}' ({d.scenario}):")
        print("=" * 44)
        print(f"Base Withdrawal:        {format_value(d.base_withdrawal)}")
        print(f"Total Withdrawal:       {format_value(d.total_withdrawal)}")
        print(f"Average Withdrawal:     {format_value(d.average_withdrawal)}")
        print(f"Total Income:           {format_value(d.total_income)}")
        print(f"Total NL Tax:           {format_value(d.total_tax_nl)}")
        print(f"Total CH Tax:           {format_value(d.total_tax_ch)}")
        print(f"Total CG Tax:           {format_value(d.total_capital_gains_tax)}")
        if d.total_uncovered > 0:
            print(f"Uncovered Shortfall:    {format_value(d.total_uncovered)}")
        print()
        print("Ending Balances:")
        print(f"  Netherlands:          {format_value(d.ending_nl)}")
        print(f"  Switzerland:          {format_value(d.ending_ch)}")
        for scenario in SCENARIOS:
            year = d.depletion_year(scenario)
            if year is not None:
                print(f"  {scenario} depleted in:       {year}")
        print()

    def do_render(self, arg: str):
        """Render the projection using one of the report modes.

        Usage: render <mode> [year_or_range]

        Examples:
            render Summary
            render Detail 2030-2040
            render Taxes 2028
        """
        parts = arg.strip().split()
        if not parts:
            print("\nAvailable render modes:")
            print("=" * 40)
            for mode in RENDERER_REGISTRY.keys():
                print(f"  - {mode}")
            print("\nUsage: render <mode> [year_or_range]")
            print()
            return

        if not self._require_plan():
            return

        matched_mode = next((m for m in RENDERER_REGISTRY if m.lower() == parts[0].lower()), None)
        if matched_mode is None:
            print(f"Error: Unknown render mode '{parts[0]}'")
            print(f"Available modes: {', '.join(RENDERER_REGISTRY.keys())}")
            return

        start_year = end_year = None
        if len(parts) >= 2:
            try:
                start_year, end_year = parse_year_range(parts[1], self.data)
            except ValueError:
                print(f"Error: Invalid year or range '{parts[1]}'")
                return
            if start_year > end_year:
                print(f"Error: Start year ({start_year}) cannot be greater than end year ({end_year})")
                return

        renderer = RENDERER_REGISTRY[matched_mode](start_year=start_year, end_year=end_year, program=self.program)
        renderer.render(self.data)

    def complete_render(self, text, line, begidx, endidx):
        text_lower = text.lower()
        return [m for m in RENDERER_REGISTRY if text_lower in m.lower()]

    def do_solve(self, arg: str):
        """Solve the sustainable base withdrawal and re-project.

        Usage: solve [NL|CH]

        Defaults to the current scenario. Solving for a scenario also
        makes it the current one.
        """
        if not self._require_plan():
            return
        try:
            scenario = check_scenario(arg.strip() or self.scenario)
        except ValueError as e:
            print(f"Error: {e}")
            return
        result = self.program.solve(scenario)
        self.scenario = scenario
        self._project(result.withdrawal)
        status = "converged" if result.converged else "did not converge"
        print(f"{scenario} base withdrawal: {format_value(result.withdrawal)} "
              f"({status} after {result.iterations} iterations, terminal {format_value(result.terminal_balance)})")

    def do_withdrawal(self, arg: str):
        """Re-project with a fixed base withdrawal.

        Usage: withdrawal <amount>
        """
        if not self._require_plan():
            return
        try:
            amount = float(arg.strip().replace(',', '').lstrip('$'))
        except ValueError:
            print(f"Error: Invalid amount '{arg.strip()}'")
            return
        self._project(amount)
        print(f"Projected {self.scenario} with base withdrawal {format_value(self.data.base_withdrawal)}; "
              f"ending NL {format_value(self.data.ending_nl)}, CH {format_value(self.data.ending_ch)}")

    def do_scenario(self, arg: str):
        """Switch the target scenario and re-project with the current withdrawal.

        Usage: scenario NL|CH
        """
        if not arg.strip():
            print(f"Current scenario: {self.scenario}")
            return
        try:
            scenario = check_scenario(arg.strip())
        except ValueError as e:
            print(f"Error: {e}")
            return
        self.scenario = scenario
        if self.data is not None:
            self._project(self.data.base_withdrawal)
        print(f"Scenario set to {scenario}")

    def complete_scenario(self, text, line, begidx, endidx):
        return [s for s in SCENARIOS if s.startswith(text.upper())]

    def do_load(self, arg: str):
        """Load a program.

        Usage: load <program_name>

        If no program name is given and a program is already loaded, reloads it.
        """
        program_name = arg.strip() if arg.strip() else (self.program.name if self.program else None)
        if not program_name:
            print("Please specify a program name.")
            print("Available programs:")
            for item in list_programs(self.base_path):
                print(f"  - {item}")
            return

        try:
            print(f"Loading program '{program_name}'...")
            self.program = load_program(program_name, self.base_path)
            self._project()
            print("Program loaded successfully!")
            print(f"Years: {self.data.first_year} - {self.data.last_year}")
            print(f"Base withdrawal ({self.scenario}): {format_value(self.data.base_withdrawal)}")
        except FileNotFoundError as e:
            print(f"Error: {e}")
        except ValueError as e:
            print(f"Error loading program: {e}")

    def complete_load(self, text, line, begidx, endidx):
        return [p for p in list_programs(self.base_path) if p.startswith(text)]

    def do_help(self, arg: str):
        """Show help for available commands."""
        if arg:
            super().do_help(arg)
        else:
            print("""
Available Commands:
==================

  get <fields> [year_or_range]
      Query one or more fields from the yearly rows.
      Fields should be comma-separated.
      Year specifier is optional:
        - Single year: 2030
        - Range: 2030-2035 (inclusive)
        - Open-ended: 2030- (from 2030 to the last year)

      Examples:
        get withdrawal
        get nl_tax, ch_total_tax
        get ending_balance_nl, ending_balance_ch 2040-

  fields [field]
      List all available field names, or describe one field.

  years
      Show the projection's year range and move year.

  summary
      Show lifetime totals and ending balances.

  render <mode> [year_or_range]
      Render a report. Modes: Summary, Detail, Taxes, Bands, Liquidation.
      Taxes with a single year prints the full breakdown.

  solve [NL|CH]
      Solve the base withdrawal that leaves the scenario near zero at the end.

  withdrawal <amount>
      Re-project with a fixed base withdrawal.

  scenario NL|CH
      Switch whose trajectory fills the account columns.

  load [program_name]
      Load a program. Shows available programs if none specified.

  help [command]
      Show this help message or help for a specific command.

  exit, quit
      Exit the shell.
""")

    def do_exit(self, arg: str):
        """Exit the shell."""
        print("Goodbye!")
        return True

    def do_quit(self, arg: str):
        """Exit the shell."""
        return self.do_exit(arg)

    def do_EOF(self, arg: str):
        """Handle Ctrl+D to exit."""
        print()
        return self.do_exit(arg)

    def emptyline(self):
        """Do nothing on empty line."""
        pass

    def default(self, line: str):
        """Handle unknown commands."""
        print(f"Unknown command: {line}")
        print("Type 'help' for available commands.")

    def complete_get(self, text, line, begidx, endidx):
        if not text:
            return self.available_fields
        text_lower = text.lower()
        return [f for f in self.available_fields if text_lower in f.lower()]

    def complete_help(self, text, line, begidx, endidx):
        commands = ['get', 'fields', 'years', 'summary', 'render', 'solve', 'withdrawal',
                    'scenario', 'load', 'exit', 'quit']
        return [c for c in commands if c.startswith(text)]


def main():
    program_name = sys.argv[1] if len(sys.argv) > 1 else None

    if program_name:
        try:
            print(f"Loading program '{program_name}'...")
            program = load_program(program_name)
            print("Program loaded successfully!")
            shell = ProjectionShell(program)
            shell.cmdloop()
        except FileNotFoundError as e:
            print(f"Error: {e}")
            sys.exit(1)
        except ValueError as e:
            print(f"Error loading program: {e}")
            sys.exit(1)
    else:
        shell = ProjectionShell()
        shell.cmdloop()


if __name__ == "__main__":
    main()
