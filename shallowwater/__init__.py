"""Two-dimensional shallow water equation solver with XDMF/HDF5 output and a minimal HDF5 reader/writer."""

__version__ = "0.1.0"
__all__ = ["__version__"]