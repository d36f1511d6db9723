import numpy as np
import pytest

from shallowwater.cli import main
from shallowwater.h5lite import read_dataset, write_datasets


def test_builtin_case_runs(capsys):
    status = main(["--case", "2", "--nx", "10", "--ny", "10", "--t-end", "0.001", "--output-n", "0"])
    out = capsys.readouterr().out
    assert status == 0
    assert "Solving SWE..." in out
    assert "Finished solving SWE." in out


def test_full_log_puts_steps_on_lines(capsys):
    main(["--nx", "10", "--ny", "10", "--t-end", "0.002", "--output-n", "0", "--full-log"])
    lines = capsys.readouterr().out.splitlines()
    steps = [line for line in lines if line.startswith("Computing T:")]
    assert steps
    assert steps[-1].endswith("100.000%")


def test_output_files_written(tmp_path):
    prefix = tmp_path / "drops"
    status = main(
        ["--nx", "8", "--ny", "6", "--t-end", "0.002", "--output-n", "1", "--output", str(prefix)]
    )
    assert status == 0
    assert (tmp_path / "drops.xdmf").exists()
    vertices = read_dataset(tmp_path / "drops_mesh.h5", "vertices")
    assert vertices.shape == (9 * 7, 2)


def test_default_prefix_from_case(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["--case", "2", "--nx", "6", "--ny", "6", "--t-end", "0.0005", "--output-n", "1"]) == 0
    assert (tmp_path / "analytical_tsunami.xdmf").exists()


def test_hdf5_input(tmp_path, capsys):
    path = tmp_path / "data.h5"
    write_datasets(
        path,
        {
            "h0": np.full((6, 5), 3.0),
            "hu0": np.zeros((6, 5)),
            "hv0": np.zeros((6, 5)),
            "topography": np.full((6, 5), -3.0),
        },
    )
    status = main(["--hdf5", str(path), "--size", "50", "--t-end", "0.001"])
    assert status == 0
    assert "Finished solving SWE." in capsys.readouterr().out


def test_missing_hdf5_file(tmp_path, capsys):
    status = main(["--hdf5", str(tmp_path / "absent.h5")])
    assert status == 1
    assert "cannot set up" in capsys.readouterr().err


def test_invalid_case_rejected():
    with pytest.raises(SystemExit):
        main(["--case", "3"])


def test_negative_output_rejected():
    with pytest.raises(SystemExit):
        main(["--output-n", "-1", "--nx", "4", "--ny", "4"])