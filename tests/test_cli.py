"""Tests for the copygen CLI."""

import shutil
from pathlib import Path

import pytest
from typer.testing import CliRunner

from copygen.__main__ import app

runner = CliRunner()

_SAMPLES = Path(__file__).parent / "fixtures" / "samples"


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    return Path(shutil.copytree(_SAMPLES, tmp_path / "samples"))


class TestCLI:
    def test_help(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "copy" in result.output.lower()

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "copygen" in result.output
        assert "copy_to" in result.output

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app)
        assert result.exit_code == 2  # no_args_is_help exits with code 2
        assert "Usage" in result.output or "usage" in result.output

    def test_generate_help(self) -> None:
        result = runner.invoke(app, ["generate", "--help"])
        assert result.exit_code == 0
        assert "--output" in result.output


class TestGenerate:
    def test_generate(self, project_dir: Path) -> None:
        result = runner.invoke(app, ["generate", str(project_dir)])
        assert result.exit_code == 0, result.output
        assert "generated: Alpha.g.cs" in result.output
        assert "10 unit(s)" in result.output
        assert (project_dir / "Generated" / "Alpha.g.cs").is_file()

        result = runner.invoke(app, ["generate", str(project_dir)])
        assert result.exit_code == 0, result.output
        assert "unchanged: Alpha.g.cs" in result.output
        assert "generated:" not in result.output

    def test_output_option(self, project_dir: Path, tmp_path: Path) -> None:
        out_dir = tmp_path / "elsewhere"
        result = runner.invoke(
            app,
            ["generate", str(project_dir), "--output", str(out_dir)],
        )
        assert result.exit_code == 0, result.output
        assert (out_dir / "Kilo.g.cs").is_file()
        assert not (project_dir / "Generated").exists()

    def test_invalid_model(self, project_dir: Path) -> None:
        (project_dir / "models" / "broken.copygen.toml").write_text("[[type]]\n")
        result = runner.invoke(app, ["generate", str(project_dir)])
        assert result.exit_code == 1
        assert "Error: " in result.output
        assert "broken.copygen.toml" in result.output


class TestCheck:
    def test_missing(self, project_dir: Path) -> None:
        result = runner.invoke(app, ["check", str(project_dir)])
        assert result.exit_code == 1
        assert "Alpha.g.cs is missing" in result.output

    def test_up_to_date(self, project_dir: Path) -> None:
        assert runner.invoke(app, ["generate", str(project_dir)]).exit_code == 0
        result = runner.invoke(app, ["check", str(project_dir)])
        assert result.exit_code == 0, result.output
        assert "up to date" in result.output

    def test_stale(self, project_dir: Path) -> None:
        assert runner.invoke(app, ["generate", str(project_dir)]).exit_code == 0
        (project_dir / "Generated" / "Bravo.g.cs").write_text("// edited\n")
        result = runner.invoke(app, ["check", str(project_dir)])
        assert result.exit_code == 1
        assert "Bravo.g.cs is stale" in result.output
        assert "Alpha.g.cs" not in result.output


class TestShow:
    def test_show(self, project_dir: Path) -> None:
        result = runner.invoke(app, ["show", "Alpha", str(project_dir)])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("// <auto-generated/>\n")
        assert "public int UpdateFrom(Alpha source)" in result.output

    def test_qualified_name(self, project_dir: Path) -> None:
        result = runner.invoke(app, ["show", "Samples.Lima", str(project_dir)])
        assert result.exit_code == 0, result.output
        assert "public void CopyTo(ref Samples.Lima3 target)" in result.output

    def test_unknown(self, project_dir: Path) -> None:
        result = runner.invoke(app, ["show", "Zulu", str(project_dir)])
        assert result.exit_code == 1
        assert "unknown or ambiguous type 'Zulu'" in result.output

    def test_nothing_requested(self, project_dir: Path) -> None:
        result = runner.invoke(app, ["show", "Lima2", str(project_dir)])
        assert result.exit_code == 1
        assert "no copy methods are requested on Samples.Lima2" in result.output


class TestMembers:
    def test_members(self, project_dir: Path) -> None:
        result = runner.invoke(
            app,
            ["members", "Vector", "System.Numerics.Vector2", str(project_dir)],
        )
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["float X", "float Y"]

    def test_private_field(self, project_dir: Path) -> None:
        result = runner.invoke(
            app,
            ["members", "November", "NovemberDto", str(project_dir)],
        )
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["int _count <- Count"]

    def test_self_includes_private_members(self, project_dir: Path) -> None:
        result = runner.invoke(
            app,
            ["members", "November", "November", str(project_dir)],
        )
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["int _count"]

    def test_unknown_source(self, project_dir: Path) -> None:
        result = runner.invoke(app, ["members", "November", "Zulu", str(project_dir)])
        assert result.exit_code == 1
        assert "unknown or ambiguous type 'Zulu'" in result.output
