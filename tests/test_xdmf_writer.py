import os
import xml.etree.ElementTree as ET

import numpy as np
import pytest

from shallowwater.h5lite import read_dataset
from shallowwater.xdmf_writer import XDMFWriter, create_cells, create_vertices


def _shoelace(points):
    x = points[:, 0]
    y = points[:, 1]
    return 0.5 * (np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


def test_create_vertices_shape_and_corners():
    vertices = create_vertices(4, 3, 8.0, 6.0)
    assert vertices.shape == (20, 2)
    assert tuple(vertices[0]) == (0.0, 0.0)
    assert tuple(vertices[-1]) == (8.0, 6.0)


def test_create_vertices_x_varies_fastest():
    nx, ny = 5, 2
    vertices = create_vertices(nx, ny, 10.0, 4.0)
    first_row = vertices[: nx + 1]
    assert np.all(first_row[:, 1] == 0.0)
    assert np.all(np.diff(first_row[:, 0]) > 0)
    assert vertices[nx + 1, 0] == 0.0
    assert vertices[nx + 1, 1] > 0.0


def test_create_cells_single_cell():
    assert create_cells(1, 1).tolist() == [[0, 1, 3, 2]]


def test_create_cells_are_counter_clockwise_unit_squares():
    nx, ny, size_x, size_y = 3, 4, 6.0, 8.0
    cells = create_cells(nx, ny)
    vertices = create_vertices(nx, ny, size_x, size_y)
    assert cells.shape == (nx * ny, 4)
    assert cells.dtype == np.int32
    assert cells.min() == 0
    assert cells.max() == (nx + 1) * (ny + 1) - 1
    cell_area = (size_x / nx) * (size_y / ny)
    for cell in cells:
        assert _shoelace(vertices[cell]) == pytest.approx(cell_area)


def test_writer_creates_mesh_and_topography(tmp_path):
    prefix = str(tmp_path / "run")
    topography = np.linspace(-1.0, 1.0, 6)
    XDMFWriter(prefix, 3, 2, 6.0, 4.0, topography)
    assert os.path.exists(prefix + ".xdmf")
    assert np.array_equal(read_dataset(prefix + "_mesh.h5", "vertices"), create_vertices(3, 2, 6, 4))
    assert np.array_equal(read_dataset(prefix + "_mesh.h5", "cells"), create_cells(3, 2))
    assert np.array_equal(read_dataset(prefix + "_topography.h5", "topography"), topography)


def test_domain_size_is_truncated_to_whole_units(tmp_path):
    prefix = str(tmp_path / "trunc")
    writer = XDMFWriter(prefix, 2, 2, 3.7, 3.7, np.zeros(4))
    vertices = read_dataset(prefix + "_mesh.h5", "vertices")
    assert writer.size_x == 3
    assert tuple(vertices[-1]) == (3.0, 3.0)


def test_render_without_time_steps(tmp_path):
    prefix = str(tmp_path / "plain")
    writer = XDMFWriter(prefix, 2, 3, 4.0, 6.0, np.zeros(6))
    text = writer.render_xdmf()
    root = ET.fromstring(text)
    assert root.tag == "Xdmf"
    assert root.get("Version") == "3.0"
    assert "Temporal" not in text
    assert 'NumberOfElements="6"' in text
    assert f"{prefix}_mesh.h5:/vertices" in text
    assert len(root.findall("./Domain/Grid")) == 1


def test_add_h_writes_snapshots_and_index(tmp_path):
    prefix = str(tmp_path / "snap")
    nx, ny = 2, 2
    writer = XDMFWriter(prefix, nx, ny, 2.0, 2.0, np.zeros(nx * ny))
    first = np.arange(4, dtype=float).reshape(ny, nx)
    second = first + 10.0
    writer.add_h(first, 0.0)
    writer.add_h(second, 0.25)

    assert writer.time_steps == [0.0, 0.25]
    assert np.array_equal(read_dataset(prefix + "_h_0.h5", "h"), first.ravel())
    assert np.array_equal(read_dataset(prefix + "_h_1.h5", "h"), second.ravel())

    text = writer.render_xdmf()
    with open(prefix + ".xdmf") as handle:
        assert handle.read() == text
    root = ET.fromstring(text)
    series = root.findall("./Domain/Grid[@CollectionType='Temporal']/Grid")
    assert len(series) == 2
    assert [grid.find("Time").get("Value") for grid in series] == ["0", "0.25"]
    assert f"{prefix}_h_1.h5:/h" in text


def test_time_value_uses_general_format(tmp_path):
    prefix = str(tmp_path / "fmt")
    writer = XDMFWriter(prefix, 1, 1, 1.0, 1.0, np.zeros(1))
    writer.add_h(np.ones(1), 1e-05)
    assert '<Time Value="1e-05"/>' in writer.render_xdmf()


def test_add_h_wrong_size_raises(tmp_path):
    prefix = str(tmp_path / "bad")
    writer = XDMFWriter(prefix, 2, 2, 2.0, 2.0, np.zeros(4))
    with pytest.raises(ValueError):
        writer.add_h(np.ones(3), 0.0)
    assert writer.time_steps == []