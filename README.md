# shallowwater

A solver for the two-dimensional shallow water equations on a uniform
rectangular grid. It uses a Lax–Friedrichs style finite-difference scheme
with a CFL-limited time step. Time is measured in hours and lengths in
kilometres. Solutions can be written as HDF5 files with an XDMF index that
ParaView and similar tools can open.

The package needs numpy. It has its own small HDF5 reader and writer, so no
HDF5 library is required.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## Command line

```
shallowwater
```

With no arguments, the command runs built-in case 1. That case is two water
drops in a reflective box on a 1000 × 1000 grid, run for 1 hour. Every 10th
step is written under the prefix `water_drops`. A 1000 × 1000 run takes a
while, so you may want a smaller grid:

```
shallowwater --case 2 --nx 200 --ny 200 --t-end 0.1 --output-n 5 --output tsunami_demo
```

Options:

| Option | Meaning |
| --- | --- |
| `--case {1,2}` | Built-in case. `1` is water drops in a box, with reflective walls. `2` is an analytical tsunami over synthetic topography, with open walls. The default is 1. |
| `--hdf5 FILE` | Read the initial data and topography from an HDF5 file. This cannot be combined with `--case`. |
| `--size KM` | Domain size in km, used for both directions with `--hdf5`. The default is 500. |
| `--t-end HOURS` | Simulation time. The default is 1.0, or 0.2 with `--hdf5`. |
| `--nx N`, `--ny N` | Number of cells per direction for the built-in cases. The default is 1000. |
| `--output-n N` | Write a solution every N steps. `0` means no output. The default is 10, or 0 with `--hdf5`. |
| `--output PREFIX` | Prefix for the output file names. The default is `water_drops`, `analytical_tsunami`, or `tsunami` with `--hdf5`. |
| `--full-log` | Print each time step on its own line instead of overwriting one progress line. |

The command exits with status 1 if it cannot set up the simulation, for
example when the file is missing, a dataset is missing, or the shapes do not
agree.

## Library use

```python
from shallowwater.swe import SWESolver

solver = SWESolver(1, 200, 200)          # test case 1 or 2, nx, ny
solver.solve(0.1, False, 10, "water_drops")
print(solver.h.shape)                    # (200, 200): rows are y, columns are x
```

`SWESolver(test_case_id, nx, ny)` accepts test case 1 or 2 on a 500 km ×
500 km domain. Any other case raises `ValueError`, and so does a grid with
fewer than 2 cells per direction.

`solve(t_end, full_log=False, output_n=0, fname_prefix="test")` advances the
solution to `t_end` hours. After it returns, the fields are available as
numpy arrays of shape `(ny, nx)`:

- `solver.h`: water height;
- `solver.hu`, `solver.hv`: momenta;
- `solver.z`: topography.

When `output_n` is positive, the solver writes these files:

- `<prefix>.xdmf`;
- `<prefix>_mesh.h5`;
- `<prefix>_topography.h5`;
- `<prefix>_h_<n>.h5`, one for each saved field: the initial state, every `output_n`-th step, and the final state.

To start from data in an HDF5 file, use `SWESolver.from_hdf5(h5_file, size_x, size_y)`.
The file must hold the two-dimensional datasets `h0`, `hu0`, `hv0` and
`topography`, all of the same shape. The first dimension is taken as `nx` and
the second as `ny`. Boundaries are open.

```python
solver = SWESolver.from_hdf5("Data_nx1001_500km.h5", 500.0, 500.0)
solver.solve(0.2, False, 0, "tsunami")
```

The building blocks of a step are also public:

- `compute_time_step(h, hu, hv, t, t_end)`;
- `update_bcs(h0, hu0, hv0)`, which returns new arrays with the boundary cells filled in;
- `solve_step(dt, h0, hu0, hv0, h, hu, hv)`, which fills the interior cells of `h`, `hu` and `hv`.

### Output helpers

`shallowwater.xdmf_writer.XDMFWriter(filename_prefix, nx, ny, size_x, size_y, topography)`
writes the mesh file, the topography file and the XDMF index when it is
created. The domain sizes are stored as whole numbers. Each call to
`add_h(h, t)` does two things:

- it writes `<prefix>_h_<n>.h5`;
- it rewrites the index.

`add_h` raises `ValueError` if `h` does not have `nx * ny` values.
`render_xdmf()` returns the index text.

`create_vertices(nx, ny, size_x, size_y)` and `create_cells(nx, ny)` build the
quadrilateral mesh arrays.

`shallowwater.h5lite` provides two functions:

- `write_datasets(path, datasets)` writes a mapping of names to integer or float arrays as a new HDF5 file.
- `read_dataset(path, name)` reads one dataset back as a numpy array.

## Limitations

- The HDF5 reader handles only contiguous and compact datasets of integer or floating-point numbers. Chunked or compressed datasets, such as files written with compression enabled, cannot be read.
- The writer always produces uncompressed, contiguous datasets.
- The package does not plot or visualise results. Open the `.xdmf` file in an external viewer to see them.