"""Tests for the MCP server tools module."""

import os
import sys
import json
import shutil
import tempfile
import pytest
from unittest.mock import patch

# Add src and mcp-server to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../src')))
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../mcp-server')))

from tools import ProjectionTools, MultiProgramTools


# Path to test fixtures
FIXTURES_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), 'fixtures'))

# Path to the project root (for reference files)
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '../..'))


@pytest.fixture(scope="module")
def test_base_path():
    """Create a temporary directory structure for testing.

    This creates a temp directory with the required structure:
    - input-parameters/testprogram/spec.json (from fixtures)
    - input-parameters/lowspend/spec.json (testprogram with a smaller withdrawal)
    - reference/*.json (symlinked from project)
    """
    temp_dir = tempfile.mkdtemp()

    # Copy the test program from fixtures
    input_params_dir = os.path.join(temp_dir, 'input-parameters')
    os.makedirs(input_params_dir)
    shutil.copytree(
        os.path.join(FIXTURES_PATH, 'testprogram'),
        os.path.join(input_params_dir, 'testprogram')
    )

    with open(os.path.join(FIXTURES_PATH, 'testprogram', 'spec.json'), 'r') as f:
        spec = json.load(f)
    spec['withdrawal']['fixedBase'] = 100000
    os.makedirs(os.path.join(input_params_dir, 'lowspend'))
    with open(os.path.join(input_params_dir, 'lowspend', 'spec.json'), 'w') as f:
        json.dump(spec, f)

    # Symlink the reference directory from the project root
    os.symlink(
        os.path.join(PROJECT_ROOT, 'reference'),
        os.path.join(temp_dir, 'reference')
    )

    yield temp_dir

    # Cleanup
    shutil.rmtree(temp_dir, ignore_errors=True)


class TestProjectionTools:
    """Tests for ProjectionTools class."""

    @pytest.fixture
    def tools(self, test_base_path):
        """Create a ProjectionTools instance using testprogram."""
        return ProjectionTools(test_base_path, 'testprogram')

    def test_init(self, tools):
        assert tools.program_name == 'testprogram'
        assert tools.first_year == 2026
        assert tools.last_year == 2035
        assert tools.inputs.move_year == 2028

    def test_init_missing_program(self, test_base_path):
        with pytest.raises(FileNotFoundError):
            ProjectionTools(test_base_path, 'nonexistent')

    def test_projection_is_cached_per_scenario(self, tools):
        nl = tools.projection()
        assert tools.projection('nl') is nl
        ch = tools.projection('CH')
        assert ch is not nl
        assert ch.scenario == 'CH'

    def test_get_program_overview(self, tools):
        result = tools.get_program_overview()

        assert result['program_name'] == 'testprogram'
        assert result['planning_horizon']['first_year'] == 2026
        assert result['planning_horizon']['years'] == 10
        assert result['planning_horizon']['ages'] == '62-71'
        assert result['opening_balances']['notes'] == 1000000
        assert result['rates']['secondary_return_rate'] == pytest.approx(0.07)
        assert result['relocation']['move_year'] == 2028
        assert result['withdrawal']['fixed_base'] == 150000
        assert result['tax_lots'] == 2
        assert result['liquidation_schedule'] == {'EQ-1': 2030, 'NOTE-1': 'hold'}

    def test_list_available_years(self, tools):
        result = tools.list_available_years()

        assert result['years'] == list(range(2026, 2036))
        assert result['total_years'] == 10
        assert result['netherlands_only_years'] == [2026, 2027]
        assert result['swiss_years'][0] == 2028

    def test_get_year_detail(self, tools):
        result = tools.get_year_detail(2030)

        assert result['year'] == 2030
        assert result['scenario'] == 'NL'
        assert result['age'] == 66
        assert result['base_withdrawal'] == 150000
        assert result['liquidation']['lots_sold'] == 1
        assert result['waterfall']['withdrawal'] == 150000
        assert result['health'] in ('healthy', 'declining', 'depleted')

    def test_get_year_detail_invalid_year(self, tools):
        result = tools.get_year_detail(2050)
        assert 'error' in result
        assert '2026-2035' in result['error']

    def test_get_tax_comparison_single_year(self, tools):
        result = tools.get_tax_comparison(2029)

        assert result['year'] == 2029
        assert result['switzerland']['ch_applies'] is True
        nl = result['netherlands']['nl_tax']
        ch = result['switzerland']['ch_total_tax']
        assert result['difference_ch_minus_nl'] == pytest.approx(ch - nl, abs=0.02)

    def test_get_tax_comparison_all_years(self, tools):
        result = tools.get_tax_comparison()

        assert len(result['years']) == 10
        assert result['years'][2026]['ch_applies'] is False
        assert result['total_tax_nl'] >= 0
        assert result['total_tax_ch'] >= 0

    def test_get_lifetime_totals(self, tools):
        result = tools.get_lifetime_totals()

        assert result['scenario'] == 'NL'
        assert result['lifetime_totals']['withdrawal'] == pytest.approx(1470000)
        assert result['lifetime_totals']['capital_gains_tax'] > 0
        assert 'ending_balance_ch' in result

    def test_get_band_summary(self, tools):
        result = tools.get_band_summary('CH')

        assert result['scenario'] == 'CH'
        assert [b['start_year'] for b in result['bands']] == [2026, 2034]
        assert result['bands'][0]['total_withdrawal'] == pytest.approx(1200000)

    def test_solve_withdrawal(self, tools):
        result = tools.solve_withdrawal('NL')

        assert result['scenario'] == 'NL'
        assert result['converged'] is True
        assert result['withdrawal'] > 0
        assert abs(result['terminal_balance']) < 10
        assert 'optimization' not in result

    def test_solve_withdrawal_with_optimization(self, tools):
        result = tools.solve_withdrawal('NL', optimize=True)

        optimization = result['optimization']
        assert optimization['optimized_withdrawal'] >= optimization['baseline_withdrawal']
        assert set(optimization['schedule'].keys()) == {'EQ-1', 'NOTE-1'}
        assert result['withdrawal'] == pytest.approx(optimization['optimized_withdrawal'], abs=0.01)

    def test_search_projection_data(self, tools):
        result = tools.search_projection_data('margin', 2030)

        assert result['year'] == 2030
        assert 'margin_balance' in result['results']
        assert 'margin_interest' in result['results']

    def test_search_all_years(self, tools):
        result = tools.search_projection_data('wealth tax')
        assert len(result['years']) == 10
        assert 'ch_wealth_tax_usd' in result['years'][2030]

    def test_search_no_match(self, tools):
        result = tools.search_projection_data('xyz')
        assert 'message' in result
        assert 'No matching' in result['message']


class TestMultiProgramTools:
    """Tests for MultiProgramTools class."""

    @pytest.fixture
    def multi_tools(self, test_base_path):
        return MultiProgramTools(test_base_path)

    def test_discovers_programs(self, multi_tools):
        assert set(multi_tools.programs.keys()) == {'lowspend', 'testprogram'}
        assert multi_tools.default_program == 'lowspend'

    def test_default_program(self, test_base_path):
        tools = MultiProgramTools(test_base_path, default_program='testprogram')
        assert tools.default_program == 'testprogram'

    def test_list_programs(self, multi_tools):
        result = multi_tools.list_programs()

        assert sorted(result['available_programs']) == ['lowspend', 'testprogram']
        assert result['programs_info']['testprogram']['move_year'] == 2028
        assert result['programs_info']['testprogram']['tax_lots'] == 2

    def test_requires_explicit_program_when_several_exist(self, multi_tools):
        with pytest.raises(ValueError, match="Multiple programs available"):
            multi_tools.get_program_overview()

    def test_unknown_program(self, multi_tools):
        with pytest.raises(ValueError, match="not found"):
            multi_tools.get_lifetime_totals(program='nope')

    def test_results_are_tagged(self, multi_tools):
        result = multi_tools.get_year_detail(2027, 'CH', 'testprogram')
        assert result['program'] == 'testprogram'
        assert result['scenario'] == 'CH'

    def test_reload_programs(self, multi_tools):
        result = multi_tools.reload_programs()

        assert result['status'] == 'success'
        assert sorted(result['changes']['reloaded']) == ['lowspend', 'testprogram']
        assert result['changes']['added'] == []

    def test_failed_program_is_skipped(self, test_base_path):
        with patch('tools.ProjectionTools', side_effect=ValueError("bad spec")):
            tools = MultiProgramTools(test_base_path)
        assert tools.programs == {}
        assert tools.default_program is None

    def test_compare_programs(self, multi_tools):
        result = multi_tools.compare_programs('testprogram', 'lowspend')

        withdrawal = result['metrics']['base_withdrawal']
        assert withdrawal['testprogram'] == 150000
        assert withdrawal['lowspend'] == 100000
        assert withdrawal['better'] == 'testprogram'
        assert result['metrics']['ending_nl']['better'] == 'lowspend'
        assert result['summary']['metrics_compared'] == 8
        assert result['summary']['overall_better'] in ('testprogram', 'lowspend', 'tie')
        assert 'recommendation' in result

    def test_compare_selected_metrics(self, multi_tools):
        result = multi_tools.compare_programs('testprogram', 'lowspend', ['ending_nl', 'tax_nl'])
        assert set(result['metrics'].keys()) == {'ending_nl', 'tax_nl'}

    def test_compare_invalid_metrics(self, multi_tools):
        result = multi_tools.compare_programs('testprogram', 'lowspend', ['bogus'])
        assert 'error' in result

    def test_compare_unknown_program(self, multi_tools):
        result = multi_tools.compare_programs('testprogram', 'nope')
        assert "'nope' not found" in result['error']
