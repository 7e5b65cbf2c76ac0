"""Acquisition and presentation pipeline for the public trail guide catalog."""

__version__ = "0.1.0"
