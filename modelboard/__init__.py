"""Modelboard: benchmark ingestion, identity resolution and model scoring."""

__version__ = "0.1.0"
