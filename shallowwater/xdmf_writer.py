"""Writes the mesh and water-height snapshots as XDMF referencing HDF5 files."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from .h5lite import write_datasets

XINCLUDE_NS = "https://www.w3.org/2001/XInclude"


def create_vertices(nx: int, ny: int, size_x: float, size_y: float) -> np.ndarray:
    """Return the (nx+1)*(ny+1) mesh vertices as rows of (x, y), x varying fastest."""
    dx = float(size_x) / nx
    dy = float(size_y) / ny
    xs = np.arange(nx + 1, dtype=np.float64) * dx
    ys = np.arange(ny + 1, dtype=np.float64) * dy
    grid_x, grid_y = np.meshgrid(xs, ys)
    return np.column_stack((grid_x.ravel(), grid_y.ravel()))


def create_cells(nx: int, ny: int) -> np.ndarray:
    """Return the nx*ny quadrilateral cells as rows of four vertex indices."""
    j, i = np.meshgrid(np.arange(ny), np.arange(nx), indexing="ij")
    first = (j * (nx + 1) + i).ravel()
    return np.column_stack((first, first + 1, first + nx + 2, first + nx + 1)).astype(np.int32)


class XDMFWriter:
    """Writes a uniform quadrilateral mesh, its topography and a series of h fields."""

    def __init__(self, filename_prefix, nx: int, ny: int, size_x, size_y, topography) -> None:
        self.filename_prefix = str(filename_prefix)
        self.nx = int(nx)
        self.ny = int(ny)
        # Domain extents are kept as whole units.
        self.size_x = int(size_x)
        self.size_y = int(size_y)
        self.time_steps: list[float] = []

        write_datasets(
            self.filename_prefix + "_mesh.h5",
            {
                "vertices": create_vertices(self.nx, self.ny, self.size_x, self.size_y),
                "cells": create_cells(self.nx, self.ny),
            },
        )
        write_datasets(
            self.filename_prefix + "_topography.h5",
            {"topography": np.asarray(topography, dtype=np.float64).ravel()},
        )
        self._write_root_xdmf()

    def add_h(self, h, t: float) -> None:
        """Record a water-height field at time t and refresh the XDMF index."""
        values = np.asarray(h, dtype=np.float64).ravel()
        if values.size != self.nx * self.ny:
            raise ValueError(f"expected {self.nx * self.ny} values for h, got {values.size}")
        self.time_steps.append(float(t))
        self._write_root_xdmf()
        index = len(self.time_steps) - 1
        write_datasets(f"{self.filename_prefix}_h_{index}.h5", {"h": values})

    def render_xdmf(self) -> str:
        """Return the text of the root XDMF document."""
        prefix = self.filename_prefix
        n_vertices = (self.nx + 1) * (self.ny + 1)
        n_cells = self.nx * self.ny
        lines = [
            '<?xml version="1.0" ?>',
            f'<Xdmf Version="3.0" xmlns:xi="{XINCLUDE_NS}">',
            "  <Domain>",
            '    <Grid Name="mesh" GridType="Uniform">',
            f'        <Topology TopologyType="Quadrilateral" NumberOfElements="{n_cells}">',
            f'          <DataItem DataType="Int" Format="HDF" Dimensions="{n_cells} 4">'
            f"{prefix}_mesh.h5:/cells</DataItem>",
            "        </Topology>",
            '        <Geometry GeometryType="XY">',
            f'          <DataItem DataType="Float" Precision="8" Format="HDF" Dimensions="{n_vertices} 2">'
            f"{prefix}_mesh.h5:/vertices</DataItem>",
            "        </Geometry>",
            "    </Grid>",
        ]
        if self.time_steps:
            lines.append('    <Grid Name="h" GridType="Collection" CollectionType="Temporal">')
            for index, t in enumerate(self.time_steps):
                lines.extend(
                    [
                        '      <Grid Name="h" GridType="Uniform">',
                        "        <xi:include xpointer =\"xpointer(/Xdmf/Domain/Grid[@GridType='Uniform'][1]"
                        '/*[self::Topology or self::Geometry])" />',
                        f'        <Time Value="{t:g}"/>',
                        '        <Attribute Name="h" AttributeType="Scalar" Center="Cell">',
                        f'          <DataItem DataType="Float" Precision="8" Format="HDF" Dimensions="{n_cells}">'
                        f"{prefix}_h_{index}.h5:/h</DataItem>",
                        "        </Attribute>",
                        '        <Attribute Name="topography" AttributeType="Scalar" Center="Cell">',
                        f'          <DataItem DataType="Float" Precision="8" Format="HDF" Dimensions="{n_cells}">'
                        f"{prefix}_topography.h5:/topography</DataItem>",
                        "        </Attribute>",
                        "      </Grid>",
                    ]
                )
            lines.append("    </Grid>")
        lines.extend(["  </Domain>", "</Xdmf>"])
        return "\n".join(lines) + "\n"

    def _write_root_xdmf(self) -> None:
        Path(self.filename_prefix + ".xdmf").write_text(self.render_xdmf())