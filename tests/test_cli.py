from click.testing import CliRunner

from rolo.cli import main


def test_analyze_prints_classification():
    result = CliRunner().invoke(main, ["analyze", "Who works at Think?"])
    assert result.exit_code == 0
    assert "organization" in result.output
    assert "basic_only" in result.output
    assert "Think" in result.output


def test_analyze_shows_rewrite():
    result = CliRunner().invoke(main, ["analyze", "What company does Felix work for?"])
    assert result.exit_code == 0
    assert "Where does Felix work?" in result.output


def test_help_without_command():
    result = CliRunner().invoke(main, [])
    assert result.exit_code == 0
    assert "rolo seed" in result.output


def test_search_rejects_zero_limit():
    result = CliRunner().invoke(main, ["search", "Felix", "--limit", "0"])
    assert result.exit_code == 2
    assert "--limit" in result.output
