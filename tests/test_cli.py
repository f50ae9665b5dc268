"""Tests for the hugr-jeff command line interface."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from hugr_jeff import RecordBuilder, build_graph, read_envelope, render_mermaid
from hugr_jeff._cli.main import app
from hugr_jeff._hugr._envelope import MAGIC

runner = CliRunner()


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _save(directory: Path, name: str, builder: RecordBuilder) -> Path:
    path = directory / name
    path.write_bytes(builder.to_bytes())
    return path


def _invoke(*args: str):  # noqa: ANN202
    return runner.invoke(app, list(args), env={"COLUMNS": "200"})


class TestConvertCommand:
    """Tests for the convert command."""

    def test_mermaid_to_stdout(self, workdir: Path, a_to_b: RecordBuilder) -> None:
        source = _save(workdir, "a_to_b.jeff", a_to_b)

        result = _invoke("convert", str(source))

        assert result.exit_code == 0, result.output
        assert result.stdout == str(render_mermaid(build_graph(a_to_b.records())))

    def test_hugr_to_file(self, workdir: Path, circuit: RecordBuilder) -> None:
        source = _save(workdir, "circuit.jeff", circuit)
        target = workdir / "out" / "circuit.hugr"

        result = _invoke("convert", str(source), "-o", str(target))

        assert result.exit_code == 0, result.output
        assert "Wrote hugr output" in result.output
        data = target.read_bytes()
        assert data.startswith(MAGIC)
        assert read_envelope(data).modules[0].nodes[1].name == "main"

    def test_mermaid_with_output_writes_both(self, workdir: Path, circuit: RecordBuilder) -> None:
        source = _save(workdir, "circuit.jeff", circuit)
        target = workdir / "circuit.hugr"

        result = _invoke("convert", str(source), "--mermaid", "-o", str(target))

        assert result.exit_code == 0, result.output
        assert result.stdout == str(render_mermaid(build_graph(circuit.records())))
        assert target.read_bytes().startswith(MAGIC)

    def test_hugr_output_prints_no_diagram(self, workdir: Path, circuit: RecordBuilder) -> None:
        source = _save(workdir, "circuit.jeff", circuit)

        result = _invoke("convert", str(source), "-o", str(workdir / "circuit.hugr"))

        assert result.exit_code == 0, result.output
        assert result.stdout == ""

    def test_diagram_flags(self, workdir: Path, a_to_b: RecordBuilder) -> None:
        source = _save(workdir, "a_to_b.jeff", a_to_b)

        result = _invoke("convert", str(source), "--edge-labels", "--direction", "TD")

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("graph TD\n")
        assert 'A -->|"0:0 int"| B' in result.stdout

    def test_wrapper_flag(self, workdir: Path, circuit: RecordBuilder) -> None:
        source = _save(workdir, "circuit.jeff", circuit)
        target = workdir / "circuit.hugr"

        result = _invoke("convert", str(source), "-o", str(target), "--wrapper", "kernel")

        assert result.exit_code == 0, result.output
        assert read_envelope(target.read_bytes()).modules[0].nodes[1].name == "kernel"

    def test_invalid_direction(self, workdir: Path, a_to_b: RecordBuilder) -> None:
        source = _save(workdir, "a_to_b.jeff", a_to_b)

        result = _invoke("convert", str(source), "--direction", "UP")

        assert result.exit_code == 1
        assert "Invalid direction" in result.output

    def test_missing_input(self, workdir: Path) -> None:
        result = _invoke("convert", str(workdir / "nope.jeff"))

        assert result.exit_code == 1
        assert "Input file not found" in result.output

    def test_validation_failure(self, workdir: Path, arity_mismatch: RecordBuilder) -> None:
        source = _save(workdir, "bad.jeff", arity_mismatch)
        target = workdir / "bad.hugr"

        result = _invoke("convert", str(source), "-o", str(target))

        assert result.exit_code == 1
        assert "ValidationFailed: 1 validation error" in result.output
        assert not target.exists()

    def test_unsupported_operation(self, workdir: Path, a_to_b: RecordBuilder) -> None:
        source = _save(workdir, "a_to_b.jeff", a_to_b)

        result = _invoke("convert", str(source), "-o", str(workdir / "a_to_b.hugr"))

        assert result.exit_code == 1
        assert "UnsupportedOperationError" in result.output


class TestConvertWithConfig:
    """Tests for convert driven by [tool.hugr-jeff]."""

    def test_configured_output(self, workdir: Path, circuit: RecordBuilder) -> None:
        (workdir / "pyproject.toml").write_text(
            '[tool.hugr-jeff]\noutput = "build/circuit.hugr"\nwrapper_name = "entry"\n',
        )
        source = _save(workdir, "circuit.jeff", circuit)

        result = _invoke("convert", str(source))

        assert result.exit_code == 0, result.output
        package = read_envelope((workdir / "build" / "circuit.hugr").read_bytes())
        assert package.modules[0].nodes[1].name == "entry"

    def test_configured_mermaid_options(self, workdir: Path, a_to_b: RecordBuilder) -> None:
        (workdir / "pyproject.toml").write_text(
            '[tool.hugr-jeff.mermaid]\ndirection = "RL"\nedge_labels = true\n',
        )
        source = _save(workdir, "a_to_b.jeff", a_to_b)

        result = _invoke("convert", str(source))

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("graph RL\n")
        assert '-->|"0:0 int"|' in result.stdout

    def test_flag_overrides_configured_direction(self, workdir: Path, a_to_b: RecordBuilder) -> None:
        (workdir / "pyproject.toml").write_text('[tool.hugr-jeff.mermaid]\ndirection = "RL"\n')
        source = _save(workdir, "a_to_b.jeff", a_to_b)

        result = _invoke("convert", str(source), "--direction", "BT")

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("graph BT\n")

    def test_configured_mermaid_mode_skips_configured_output(self, workdir: Path, a_to_b: RecordBuilder) -> None:
        (workdir / "pyproject.toml").write_text('[tool.hugr-jeff]\nmode = "mermaid"\noutput = "a_to_b.hugr"\n')
        source = _save(workdir, "a_to_b.jeff", a_to_b)

        result = _invoke("convert", str(source))

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("graph LR\n")
        assert not (workdir / "a_to_b.hugr").exists()

    def test_hugr_mode_without_output(self, workdir: Path, circuit: RecordBuilder) -> None:
        (workdir / "pyproject.toml").write_text('[tool.hugr-jeff]\nmode = "hugr"\n')
        source = _save(workdir, "circuit.jeff", circuit)

        result = _invoke("convert", str(source))

        assert result.exit_code == 1
        assert "HUGR output requires a path" in result.output

    def test_invalid_config(self, workdir: Path, circuit: RecordBuilder) -> None:
        (workdir / "pyproject.toml").write_text('[tool.hugr-jeff]\nmode = "svg"\n')
        source = _save(workdir, "circuit.jeff", circuit)

        result = _invoke("convert", str(source))

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestCheckCommand:
    """Tests for the check command."""

    def test_valid_graph(self, workdir: Path, circuit: RecordBuilder) -> None:
        source = _save(workdir, "circuit.jeff", circuit)

        result = _invoke("check", str(source))

        assert result.exit_code == 0, result.output
        assert "Module: circuit" in result.output
        assert "qubit.gate" in result.output
        assert "Graph is valid" in result.output

    def test_dangling_reference(self, workdir: Path, dangling_port_bytes: bytes) -> None:
        source = workdir / "dangling.jeff"
        source.write_bytes(dangling_port_bytes)

        result = _invoke("check", str(source))

        assert result.exit_code == 1
        assert "DanglingReference" in result.output
        assert "Graph is valid" not in result.output

    def test_validation_errors_table(self, workdir: Path, arity_mismatch: RecordBuilder) -> None:
        source = _save(workdir, "bad.jeff", arity_mismatch)

        result = _invoke("check", str(source))

        assert result.exit_code == 1
        assert "boundary_arity" in result.output
