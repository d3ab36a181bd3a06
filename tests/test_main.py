"""
Tests for the command line entry point.
"""
import json

import pytest

from codec import encode_share_fragment
from io_utils import save_state_json
from main import build_parser, main


@pytest.fixture
def plan_file(plan_state, tmp_path):
    path = tmp_path / 'plan.json'
    save_state_json(plan_state, str(path))
    return path


class TestParser:
    """Test argument parsing"""

    def test_defaults(self):
        """Test no arguments parse to a default run"""
        args = build_parser().parse_args([])

        assert args.state_file is None
        assert args.share is None
        assert not args.print_share

    def test_outputs(self):
        """Test output options"""
        args = build_parser().parse_args(['plan.json', '--csv', 'out.csv', '--print-share'])

        assert args.state_file == 'plan.json'
        assert args.csv_out == 'out.csv'
        assert args.print_share


class TestMain:
    """Test end-to-end CLI runs"""

    def test_summary_from_file(self, plan_file, capsys):
        """Test a plan file prints its summary"""
        assert main([str(plan_file)]) == 0

        out = capsys.readouterr().out
        assert "age 30 to 35" in out
        assert "Net worth at retirement" in out

    def test_default_plan(self, capsys):
        """Test running without a plan uses the defaults"""
        assert main([]) == 0
        assert "age 30 to 65" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        """Test an unreadable plan file fails cleanly"""
        assert main([str(tmp_path / 'missing.json')]) == 1
        assert "Could not load" in capsys.readouterr().err

    def test_share_link(self, plan_state, capsys):
        """Test loading from a share fragment"""
        assert main(['--share', encode_share_fragment(plan_state)]) == 0
        assert "age 30 to 35" in capsys.readouterr().out

    def test_bad_share_link(self, capsys):
        """Test an undecodable share link fails cleanly"""
        assert main(['--share', '#share=nonsense']) == 1

    def test_print_share(self, plan_file, capsys):
        """Test the share fragment is printed"""
        main([str(plan_file), '--print-share'])
        assert '#share=' in capsys.readouterr().out

    def test_writes_outputs(self, plan_file, tmp_path):
        """Test CSV, JSON and chart outputs are written"""
        csv_path = tmp_path / 'out.csv'
        json_path = tmp_path / 'out.json'
        charts_dir = tmp_path / 'charts'
        assert main([str(plan_file), '--csv', str(csv_path), '--json', str(json_path),
                     '--charts', str(charts_dir)]) == 0

        assert csv_path.read_text().startswith('"Year","Month"')
        assert json.loads(json_path.read_text())['profile']['retirementAge'] == 35
        assert (charts_dir / 'net_worth.html').exists()
        assert len(list(charts_dir.glob('*.html'))) == 5

    def test_compare(self, plan_file, tmp_path, capsys):
        """Test comparing against an overrides file"""
        overrides = tmp_path / 'later.json'
        overrides.write_text(json.dumps({'profile': {'retirementAge': 40}}))

        assert main([str(plan_file), '--compare', str(overrides)]) == 0
        out = capsys.readouterr().out
        assert "Compared with later" in out
        assert "net_worth_at_retirement" in out

    def test_missing_tax_data(self, plan_file, tmp_path, capsys):
        """Test a missing tax data directory still projects"""
        assert main([str(plan_file), '--tax-data', str(tmp_path / 'nowhere')]) == 0
        assert "tax-federal" in capsys.readouterr().out
