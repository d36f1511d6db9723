[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "shallowwater"
version = "0.1.0"
description = "Finite-difference solver for the 2D shallow water equations with XDMF/HDF5 output"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["shallow water", "tsunami", "simulation", "xdmf", "hdf5", "finite difference"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
shallowwater = "shallowwater.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["shallowwater"]

[tool.pytest.ini_options]
addopts = "-ra"
