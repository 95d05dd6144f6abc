"""Render chart and canvas configurations to images through pooled connections to a headless browser."""

__version__ = "0.1.0"