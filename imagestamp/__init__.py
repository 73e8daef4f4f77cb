"""Template rendering engine: layered templates + background photo -> raster image."""

__version__ = "0.1.0"
