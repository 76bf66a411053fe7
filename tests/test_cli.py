import json

import pytest

import cli
from data.matrix import MatrixData


def test_dry_run_prints_resolved_config(capsys):
    rc = cli.main(["--x", "8", "--y", "4", "--axis", "Z:3:0:1:um", "--dry-run"])
    out = capsys.readouterr().out
    assert rc == 0
    payload = json.loads(out.split("\n", 1)[1])
    assert payload["x_count"] == 8
    assert payload["axes"][0]["name"] == "Z"
    assert payload["axes"][0]["unit"] == "um"


def test_build_and_project(capsys):
    rc = cli.main([
        "--x", "8", "--y", "6",
        "--axis", "Z:3", "--axis", "Time:2",
        "--project", "z", "--mode", "avg", "--along", "Time",
    ])
    out = capsys.readouterr().out
    assert rc == 0
    assert "[Build]" in out
    assert "[Dimensions]" in out
    assert "[Stats]" in out
    assert "[Project] avg along Z -> 8x6" in out


def test_config_file(tmp_path, capsys):
    path = tmp_path / "c.yaml"
    path.write_text("x_count: 4\ny_count: 4\naxes:\n  - {name: Z, count: 2}\n", encoding="utf-8")
    rc = cli.main(["--config", str(path), "--project", "x"])
    assert rc == 0
    assert "[Project] max along X -> 4x2" in capsys.readouterr().out


def test_errors_are_reported_with_exit_code(capsys):
    rc = cli.main(["--x", "0"])
    assert rc == 2
    assert "[Error] ValueError" in capsys.readouterr().out


def test_bad_axis_shorthand_exits():
    with pytest.raises(SystemExit):
        cli.main(["--axis", "Z"])


def test_fill_synthetic_varies_by_frame():
    md = cli.fill_synthetic(MatrixData(4, 4, 3), seed=1)
    lo0, hi0 = md.get_value_range(0)
    lo2, hi2 = md.get_value_range(2)
    assert hi2 > hi0
    assert md.store.range_at(1).is_valid
