#!/usr/bin/env python3
"""MCP Server for the net-worth projection.

This server exposes the Netherlands vs Switzerland projection as MCP
tools, allowing AI assistants to answer questions about a household's
long-horizon plan.
"""

import os
import sys
import json
import asyncio
from typing import Any

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from tools import MultiProgramTools


# Create the MCP server
server = Server("networth-projection")

# Global tools instance (initialized on startup)
tools: MultiProgramTools | None = None


def get_tools() -> MultiProgramTools:
    """Get or initialize the tools instance."""
    global tools
    if tools is None:
        # Default program can be set via NETWORTH_PROGRAM env var
        default_program = os.environ.get('NETWORTH_PROGRAM')
        base_path = os.path.join(os.path.dirname(__file__), '..')
        tools = MultiProgramTools(base_path, default_program)
    return tools


# Common parameter schemas
PROGRAM_PARAM = {
    "type": "string",
    "description": "The program name (folder in input-parameters). If not specified, uses the default program. Use list_programs to see available programs."
}

SCENARIO_PARAM = {
    "type": "string",
    "enum": ["NL", "CH"],
    "description": "Scenario whose trajectory fills the account figures: NL (stay in the Netherlands) or CH (relocate to Zurich in the move year). Defaults to NL."
}

YEAR_PARAM = {
    "type": "integer",
    "description": "Calendar year within the planning horizon"
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available projection tools."""
    return [
        Tool(
            name="list_programs",
            description="List all available household programs with their horizon, move year and number of tax lots.",
            inputSchema={
                "type": "object",
                "properties": {},
                "required": []
            }
        ),
        Tool(
            name="reload_programs",
            description="Reload all programs from disk. Use this after adding, modifying, or removing program spec.json files to refresh the cache without restarting the server.",
            inputSchema={
                "type": "object",
                "properties": {},
                "required": []
            }
        ),
        Tool(
            name="get_program_overview",
            description="Get an overview of the household program: horizon, opening balances, rates, relocation settings, withdrawal curve and tax lots. Use this first to understand the plan.",
            inputSchema={
                "type": "object",
                "properties": {
                    "program": PROGRAM_PARAM
                },
                "required": []
            }
        ),
        Tool(
            name="list_available_years",
            description="List all projected years, which of them fall after the move to Switzerland, and the first year each balance is depleted.",
            inputSchema={
                "type": "object",
                "properties": {
                    "program": PROGRAM_PARAM
                },
                "required": []
            }
        ),
        Tool(
            name="get_year_detail",
            description="Get balances, income, cash-flow waterfall and lot sales for one year of a scenario.",
            inputSchema={
                "type": "object",
                "properties": {
                    "year": YEAR_PARAM,
                    "scenario": SCENARIO_PARAM,
                    "program": PROGRAM_PARAM
                },
                "required": ["year"]
            }
        ),
        Tool(
            name="get_tax_comparison",
            description="Compare Netherlands Box 3 tax with Zurich wealth and investment-income tax, for one year (full breakdown) or all years.",
            inputSchema={
                "type": "object",
                "properties": {
                    "year": {
                        "type": "integer",
                        "description": "Optional: specific year. If omitted, returns every year and lifetime totals."
                    },
                    "scenario": SCENARIO_PARAM,
                    "program": PROGRAM_PARAM
                },
                "required": []
            }
        ),
        Tool(
            name="get_lifetime_totals",
            description="Get lifetime totals of income, taxes, withdrawals and uncovered shortfall, plus ending balances and depletion years.",
            inputSchema={
                "type": "object",
                "properties": {
                    "scenario": SCENARIO_PARAM,
                    "program": PROGRAM_PARAM
                },
                "required": []
            }
        ),
        Tool(
            name="get_band_summary",
            description="Get totals grouped by withdrawal-curve age band.",
            inputSchema={
                "type": "object",
                "properties": {
                    "scenario": SCENARIO_PARAM,
                    "program": PROGRAM_PARAM
                },
                "required": []
            }
        ),
        Tool(
            name="solve_withdrawal",
            description="Solve the largest constant base withdrawal that leaves the scenario's terminal balance near zero. With optimize=true, first searches for a tax-lot sale schedule that raises it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "scenario": SCENARIO_PARAM,
                    "optimize": {
                        "type": "boolean",
                        "description": "Optional: run the greedy lot liquidation search before solving"
                    },
                    "program": PROGRAM_PARAM
                },
                "required": []
            }
        ),
        Tool(
            name="search_projection_data",
            description="Search for specific projection values. Use this for questions like 'margin balance in 2035' or 'Swiss wealth tax'.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Natural language query, e.g., 'margin', 'Box 3', 'wealth tax', 'net worth'"
                    },
                    "year": {
                        "type": "integer",
                        "description": "Optional: specific year to search in"
                    },
                    "scenario": SCENARIO_PARAM,
                    "program": PROGRAM_PARAM
                },
                "required": ["query"]
            }
        ),
        Tool(
            name="compare_programs",
            description="Compare two programs on withdrawal, taxes and ending balances and report which is better overall.",
            inputSchema={
                "type": "object",
                "properties": {
                    "program1": {
                        "type": "string",
                        "description": "First program name to compare"
                    },
                    "program2": {
                        "type": "string",
                        "description": "Second program name to compare"
                    },
                    "metrics": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Optional: specific metrics to compare. Options: 'base_withdrawal', 'total_withdrawal', 'lifetime_income', 'tax_nl', 'tax_ch', 'capital_gains_tax', 'ending_nl', 'ending_ch'. If not specified, compares all metrics."
                    },
                    "scenario": SCENARIO_PARAM
                },
                "required": ["program1", "program2"]
            }
        )
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        nw_tools = get_tools()
        program = arguments.get("program")
        scenario = arguments.get("scenario")

        if name == "list_programs":
            result = nw_tools.list_programs()
        elif name == "reload_programs":
            result = nw_tools.reload_programs()
        elif name == "get_program_overview":
            result = nw_tools.get_program_overview(program)
        elif name == "list_available_years":
            result = nw_tools.list_available_years(program)
        elif name == "get_year_detail":
            result = nw_tools.get_year_detail(arguments["year"], scenario, program)
        elif name == "get_tax_comparison":
            result = nw_tools.get_tax_comparison(arguments.get("year"), scenario, program)
        elif name == "get_lifetime_totals":
            result = nw_tools.get_lifetime_totals(scenario, program)
        elif name == "get_band_summary":
            result = nw_tools.get_band_summary(scenario, program)
        elif name == "solve_withdrawal":
            result = nw_tools.solve_withdrawal(scenario, arguments.get("optimize", False), program)
        elif name == "search_projection_data":
            result = nw_tools.search_projection_data(
                arguments["query"],
                arguments.get("year"),
                scenario,
                program
            )
        elif name == "compare_programs":
            result = nw_tools.compare_programs(
                arguments["program1"],
                arguments["program2"],
                arguments.get("metrics"),
                scenario
            )
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(
            type="text",
            text=json.dumps(result, indent=2, default=str)
        )]
    except Exception as e:
        return [TextContent(
            type="text",
            text=json.dumps({"error": str(e)}, indent=2)
        )]


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    asyncio.run(main())
