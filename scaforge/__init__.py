"""Scaforge -- plugin management for scaffolded web projects."""

__version__ = "0.1.0"
