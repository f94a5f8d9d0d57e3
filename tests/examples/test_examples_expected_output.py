"""Run every example and compare its stdout with the inline ``# =>`` expectations."""

import ast
import runpy
from pathlib import Path

import pytest

EXAMPLES_ROOT = Path(__file__).resolve().parents[2] / "examples"
EXPECTATION_MARKER = "# =>"


def _example_paths() -> list[Path]:
    return sorted(EXAMPLES_ROOT.glob("ex_*/01_*.py"))


def _expected_lines(path: Path) -> list[str]:
    source = path.read_text(encoding="utf-8")
    source_lines = source.splitlines()
    print_calls = sorted(
        (
            node
            for node in ast.walk(ast.parse(source, filename=str(path)))
            if isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id == "print"
        ),
        key=lambda node: (node.lineno, node.col_offset),
    )

    expected: list[str] = []
    for call in print_calls:
        closing_line = source_lines[(call.end_lineno or call.lineno) - 1]
        if EXPECTATION_MARKER not in closing_line:
            msg = f"{path}:{call.lineno}: print() must end with '{EXPECTATION_MARKER} <output>'."
            raise AssertionError(msg)
        expected.append(closing_line.split(EXPECTATION_MARKER, maxsplit=1)[1].strip())
    return expected


def test_examples_exist() -> None:
    assert _example_paths()


@pytest.mark.parametrize(
    "path",
    _example_paths(),
    ids=lambda path: f"{path.parent.name}/{path.name}",
)
def test_example_output_matches_expectations(
    path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    runpy.run_path(str(path), run_name="__main__")

    captured = capsys.readouterr()

    assert captured.err == ""
    assert captured.out.splitlines() == _expected_lines(path)
