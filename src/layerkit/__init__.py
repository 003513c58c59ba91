"""Layerkit - field specifications and feature integration for layered Go services."""

__version__ = "0.4.0"
