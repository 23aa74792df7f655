"""
Pipeline orchestration module for eCFR word counting.
"""

from .pipeline import TitleWordCountPipeline

__all__ = ["TitleWordCountPipeline"]
