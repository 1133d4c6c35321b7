"""Loads a program folder and wires up the projection calculators.

A program lives in `input-parameters/<name>/spec.json`; statutory
constants live in `reference/`. Both are resolved relative to a base
path, which defaults to the repository root.
"""

import json
import os
from dataclasses import dataclass, field
from typing import List, Optional

from model.PlanInputs import PlanInputs
from model.ProjectionData import ProjectionData, NL
from model.TaxLot import TaxLot, LiquidationSchedule, load_lots
from tax.NetherlandsDetails import NetherlandsDetails
from tax.SwissDetails import SwissDetails
from tax.CapitalGainsDetails import CapitalGainsDetails
from calc.projection_calculator import ProjectionCalculator
from calc.withdrawal_solver import WithdrawalSolver, SolveResult


DEFAULT_BASE_PATH = os.path.normpath(os.path.join(os.path.dirname(__file__), '..'))


def spec_path(program_name: str, base_path: Optional[str] = None) -> str:
    return os.path.join(base_path or DEFAULT_BASE_PATH, 'input-parameters', program_name, 'spec.json')


def load_spec(program_name: str, base_path: Optional[str] = None) -> dict:
    path = spec_path(program_name, base_path)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Spec file not found: {path}")
    with open(path, 'r') as f:
        return json.load(f)


def list_programs(base_path: Optional[str] = None) -> List[str]:
    """Program names that have a spec.json, sorted."""
    input_params_dir = os.path.join(base_path or DEFAULT_BASE_PATH, 'input-parameters')
    programs = []
    if os.path.exists(input_params_dir):
        for item in sorted(os.listdir(input_params_dir)):
            if os.path.exists(os.path.join(input_params_dir, item, 'spec.json')):
                programs.append(item)
    return programs


def _load_reference(base_path: str, filename: str) -> dict:
    with open(os.path.join(base_path, 'reference', filename), 'r') as f:
        return json.load(f)


def build_calculator(lots: Optional[List[TaxLot]] = None, zero_basis_classes=(),
                     base_path: Optional[str] = None) -> ProjectionCalculator:
    base_path = base_path or DEFAULT_BASE_PATH
    netherlands = NetherlandsDetails(_load_reference(base_path, 'netherlands-box3.json'))
    swiss = SwissDetails(_load_reference(base_path, 'zurich-wealth-tax.json'))
    ltcg_rate = _load_reference(base_path, 'capital-gains.json').get('longTermRate', 0)
    capital_gains = CapitalGainsDetails(ltcg_rate, zero_basis_classes)
    return ProjectionCalculator(netherlands, swiss, capital_gains, lots)


@dataclass
class Program:
    """A loaded program: its spec, parsed inputs and ready calculators."""
    name: str
    spec: dict
    inputs: PlanInputs
    lots: List[TaxLot]
    schedule: LiquidationSchedule
    calculator: ProjectionCalculator
    solver: WithdrawalSolver = field(init=False)

    def __post_init__(self):
        self.solver = WithdrawalSolver(self.calculator)

    @property
    def fixed_withdrawal(self) -> Optional[float]:
        return self.spec.get('withdrawal', {}).get('fixedBase')

    def solve(self, scenario: str = NL, schedule: Optional[LiquidationSchedule] = None) -> SolveResult:
        return self.solver.solve(self.inputs, scenario, schedule or self.schedule)

    def project(self, base_withdrawal: Optional[float] = None, scenario: str = NL,
                schedule: Optional[LiquidationSchedule] = None) -> ProjectionData:
        """Project with a given base withdrawal, the spec's fixed one, or a solved one."""
        schedule = schedule or self.schedule
        if base_withdrawal is None:
            base_withdrawal = self.fixed_withdrawal
        if base_withdrawal is None:
            base_withdrawal = self.solver.solve(self.inputs, scenario, schedule).withdrawal
        return self.calculator.simulate(self.inputs, base_withdrawal, scenario, schedule)


def load_program(program_name: str, base_path: Optional[str] = None) -> Program:
    spec = load_spec(program_name, base_path)
    inputs = PlanInputs.from_spec(spec)
    lots = load_lots(spec.get('taxLots', []))
    schedule = LiquidationSchedule.from_spec(spec.get('liquidationSchedule'))
    calculator = build_calculator(lots, inputs.zero_basis_classes, base_path)
    scheduler = calculator.scheduler(inputs)
    if scheduler is not None:
        scheduler.validate(schedule)
    return Program(program_name, spec, inputs, lots, schedule, calculator)
