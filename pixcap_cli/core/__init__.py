"""
Core Layer.

This package orchestrates the crawl, resolve and store stages.
"""

from .pipeline import HarvestPipeline

__all__ = ["HarvestPipeline"]
