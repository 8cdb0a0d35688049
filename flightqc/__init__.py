"""Drone flight log importer and QC dashboard."""

__version__ = "0.1.0"
