"""Lax-Friedrichs solver for the two-dimensional shallow water equations."""

from __future__ import annotations

import math
import os

import numpy as np

from .h5lite import read_dataset
from .xdmf_writer import XDMFWriter

# Gravity 9.82 * 3.6**2 * 1000 in km / hour**2.
G = 127267.20000000

_INNER = (slice(1, -1), slice(1, -1))
_WEST = (slice(1, -1), slice(None, -2))
_EAST = (slice(1, -1), slice(2, None))
_SOUTH = (slice(None, -2), slice(1, -1))
_NORTH = (slice(2, None), slice(1, -1))


class SWESolver:
    """Shallow water solver on a uniform grid of nx by ny cells.

    Fields are numpy arrays of shape (ny, nx): row j, column i.
    """

    g = G

    def __init__(self, test_case_id: int, nx: int, ny: int) -> None:
        """Set up test case 1 (water drops in a box) or 2 (analytical tsunami)."""
        if test_case_id not in (1, 2):
            raise ValueError(f"unknown test case {test_case_id!r}; expected 1 or 2")
        self._configure(nx, ny, 500.0, 500.0, reflective=test_case_id == 1)
        if test_case_id == 1:
            self._init_gaussian()
        else:
            self._init_dummy_tsunami()

    @classmethod
    def from_hdf5(cls, h5_file: str | os.PathLike, size_x: float, size_y: float) -> SWESolver:
        """Load initial conditions and topography from an HDF5 file."""
        fields: dict[str, np.ndarray] = {}
        shape: tuple[int, ...] | None = None
        for name in ("h0", "hu0", "hv0", "topography"):
            data = np.asarray(read_dataset(h5_file, name), dtype=np.float64)
            if data.ndim != 2:
                raise ValueError(f"dataset {name!r} must be two-dimensional, got shape {data.shape}")
            if shape is not None and data.shape != shape:
                raise ValueError(f"dataset {name!r} has shape {data.shape}, expected {shape}")
            shape = data.shape
            fields[name] = data
        assert shape is not None
        nx, ny = shape
        solver = cls.__new__(cls)
        solver._configure(nx, ny, size_x, size_y, reflective=False)
        solver._set_state(
            *(fields[name].ravel().reshape(ny, nx) for name in ("h0", "hu0", "hv0", "topography"))
        )
        return solver

    # -- setup --------------------------------------------------------------

    def _configure(self, nx: int, ny: int, size_x: float, size_y: float, reflective: bool) -> None:
        nx, ny = int(nx), int(ny)
        if nx < 2 or ny < 2:
            raise ValueError(f"the grid needs at least 2 cells per direction, got {nx}x{ny}")
        self.nx = nx
        self.ny = ny
        self.size_x = float(size_x)
        self.size_y = float(size_y)
        self.reflective = reflective

    def _cell_centres(self) -> tuple[np.ndarray, np.ndarray]:
        dx = self.size_x / self.nx
        dy = self.size_y / self.ny
        xs = dx * (np.arange(self.nx, dtype=np.float64) + 0.5)
        ys = dy * (np.arange(self.ny, dtype=np.float64) + 0.5)
        return np.meshgrid(xs, ys)

    def _set_state(self, h: np.ndarray, hu: np.ndarray, hv: np.ndarray, z: np.ndarray) -> None:
        self.h = np.array(h, dtype=np.float64)
        self.hu = np.array(hu, dtype=np.float64)
        self.hv = np.array(hv, dtype=np.float64)
        self.z = np.array(z, dtype=np.float64)
        self._init_dx_dy()

    def _init_gaussian(self) -> None:
        x, y = self._cell_centres()
        x0_0, y0_0 = self.size_x / 4.0, self.size_y / 3.0
        x0_1, y0_1 = self.size_x / 2.0, 0.75 * self.size_y
        gauss_0 = 10.0 * np.exp(-((x - x0_0) ** 2 + (y - y0_0) ** 2) / 1000.0)
        gauss_1 = 10.0 * np.exp(-((x - x0_1) ** 2 + (y - y0_1) ** 2) / 1000.0)
        zeros = np.zeros_like(x)
        self._set_state(10.0 + gauss_0 + gauss_1, zeros, zeros, zeros)

    def _init_dummy_tsunami(self) -> None:
        x, y = self._cell_centres()
        x0_0, y0_0 = 0.6 * self.size_x, 0.6 * self.size_y
        x0_1, y0_1 = 0.4 * self.size_x, 0.4 * self.size_y
        x0_2, y0_2 = 0.7 * self.size_x, 0.3 * self.size_y
        gauss_0 = 2.0 * np.exp(-((x - x0_0) ** 2 + (y - y0_0) ** 2) / 3000.0)
        gauss_1 = 3.0 * np.exp(-((x - x0_1) ** 2 + (y - y0_1) ** 2) / 10000.0)
        gauss_2 = 5.0 * np.exp(-((x - x0_2) ** 2 + (y - y0_2) ** 2) / 100.0)
        z = -1.0 + gauss_0 + gauss_1
        h = np.where(z < 0.0, -z + gauss_2, 0.00001)
        zeros = np.zeros_like(x)
        self._set_state(h, zeros, zeros, z)

    def _init_dummy_slope(self) -> None:
        x, _ = self._cell_centres()
        dz = 10.0
        z = -10.0 - 0.5 * dz + dz / self.size_x * x
        h = np.where(z < 0.0, -z, 0.00001)
        zeros = np.zeros_like(x)
        self._set_state(h, zeros, zeros, z)

    def _init_dx_dy(self) -> None:
        dx = self.size_x / self.nx
        dy = self.size_y / self.ny
        self.zdx = np.zeros_like(self.z)
        self.zdy = np.zeros_like(self.z)
        self.zdx[_INNER] = 0.5 * (self.z[_EAST] - self.z[_WEST]) / dx
        self.zdy[_INNER] = 0.5 * (self.z[_NORTH] - self.z[_SOUTH]) / dy

    def _grid(self, field) -> np.ndarray:
        return np.asarray(field, dtype=np.float64).reshape(self.ny, self.nx)

    # -- numerics -----------------------------------------------------------

    def compute_time_step(self, h, hu, hv, t: float, t_end: float) -> float:
        """Return a CFL-stable time step, never stepping past t_end."""
        h_in = self._grid(h)[_INNER]
        hu_in = self._grid(hu)[_INNER]
        hv_in = self._grid(hv)[_INNER]
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            wave = np.sqrt(G * h_in)
            nu_u = np.abs(hu_in) / h_in + wave
            nu_v = np.abs(hv_in) / h_in + wave
            nu_sqr = nu_u * nu_u + nu_v * nu_v
        nu_sqr = nu_sqr[~np.isnan(nu_sqr)]
        max_nu_sqr = max(0.0, float(nu_sqr.max())) if nu_sqr.size else 0.0

        dx = self.size_x / self.nx
        dy = self.size_y / self.ny
        denominator = math.sqrt(2.0 * max_nu_sqr)
        dt = min(dx, dy) / denominator if denominator > 0.0 else math.inf
        return min(dt, t_end - t)

    def update_bcs(self, h0, hu0, hv0) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return copies of the fields with boundary cells set from their neighbours.

        With reflective walls the normal momentum changes sign at the boundary.
        """
        coef = -1.0 if self.reflective else 1.0
        h0, hu0, hv0 = self._grid(h0), self._grid(hu0), self._grid(hv0)
        h, hu, hv = h0.copy(), hu0.copy(), hv0.copy()

        # Bottom and top rows.
        h[0, :], h[-1, :] = h0[1, :], h0[-2, :]
        hu[0, :], hu[-1, :] = hu0[1, :], hu0[-2, :]
        hv[0, :], hv[-1, :] = coef * hv0[1, :], coef * hv0[-2, :]

        # Left and right columns, corners included.
        h[:, 0], h[:, -1] = h0[:, 1], h0[:, -2]
        hu[:, 0], hu[:, -1] = coef * hu0[:, 1], coef * hu0[:, -2]
        hv[:, 0], hv[:, -1] = hv0[:, 1], hv0[:, -2]
        return h, hu, hv

    def solve_step(self, dt: float, h0, hu0, hv0, h, hu, hv) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Fill the interior cells of h, hu, hv from the previous fields and return them.

        h, hu, hv must be numpy arrays of the grid's size; their boundary cells are left as they are.
        """
        h0, hu0, hv0 = self._grid(h0), self._grid(hu0), self._grid(hv0)
        h, hu, hv = (np.asarray(a).reshape(self.ny, self.nx) for a in (h, hu, hv))

        dx = self.size_x / self.nx
        dy = self.size_x / self.ny  # both kernel spacings are measured with the x extent
        c1x = 0.5 * dt / dx
        c1y = 0.5 * dt / dy
        c2 = dt * G
        c3 = 0.5 * G

        hij = 0.25 * (h0[_SOUTH] + h0[_NORTH] + h0[_WEST] + h0[_EAST]) + c1x * (
            hu0[_WEST] - hu0[_EAST]
        ) + c1y * (hv0[_SOUTH] - hv0[_NORTH])
        hij = np.where(hij < 0.0, 1.0e-5, hij)

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            new_hu = (
                0.25 * (hu0[_SOUTH] + hu0[_NORTH] + hu0[_WEST] + hu0[_EAST])
                - c2 * hij * self.zdx[_INNER]
                + c1x
                * (
                    hu0[_WEST] ** 2 / h0[_WEST]
                    + c3 * h0[_WEST] ** 2
                    - hu0[_EAST] ** 2 / h0[_EAST]
                    - c3 * h0[_EAST] ** 2
                )
                + c1y * (hu0[_SOUTH] * hv0[_SOUTH] / h0[_SOUTH] - hu0[_NORTH] * hv0[_NORTH] / h0[_NORTH])
            )
            new_hv = (
                0.25 * (hv0[_SOUTH] + hv0[_NORTH] + hv0[_WEST] + hv0[_EAST])
                - c2 * hij * self.zdy[_INNER]
                + c1x * (hu0[_WEST] * hv0[_WEST] / h0[_WEST] - hu0[_EAST] * hv0[_EAST] / h0[_EAST])
                + c1y
                * (
                    hv0[_SOUTH] ** 2 / h0[_SOUTH]
                    + c3 * h0[_SOUTH] ** 2
                    - hv0[_NORTH] ** 2 / h0[_NORTH]
                    - c3 * h0[_NORTH] ** 2
                )
            )
        wet = hij > 0.0001
        h[_INNER] = hij
        hu[_INNER] = np.where(wet, new_hu, 0.0)
        hv[_INNER] = np.where(wet, new_hv, 0.0)
        return h, hu, hv

    def solve(self, t_end: float, full_log: bool = False, output_n: int = 0, fname_prefix: str = "test") -> None:
        """Advance the solution to t_end hours.

        When output_n is positive, the water height is written every output_n
        steps (and at the start and end) as XDMF/HDF5 files named after fname_prefix.
        """
        writer = None
        if output_n > 0:
            writer = XDMFWriter(fname_prefix, self.nx, self.ny, self.size_x, self.size_y, self.z)
            writer.add_h(self.h, 0.0)

        t = 0.0
        h0, hu0, hv0 = self.h, self.hu, self.hv
        print("Solving SWE...", flush=True)

        nt = 1
        while t < t_end:
            dt = self.compute_time_step(h0, hu0, hv0, t, t_end)
            t1 = t + dt
            print(
                f"Computing T: {t1:2.4f} hr  (dt = {dt * 3600:.2e} s) -- {100 * t1 / t_end:3.3f}%",
                end="\n" if full_log else "\r",
                flush=True,
            )
            h, hu, hv = self.update_bcs(h0, hu0, hv0)
            self.solve_step(dt, h0, hu0, hv0, h, hu, hv)

            if writer is not None and nt % output_n == 0:
                writer.add_h(h, t1)
            nt += 1

            h0, hu0, hv0 = h, hu, hv
            t = t1

        self.h, self.hu, self.hv = h0, hu0, hv0
        if writer is not None:
            writer.add_h(self.h, t)
        print("Finished solving SWE.", flush=True)