"""Data preparation applied before or during subsampling"""

from .scaling import prepare_data

__all__ = ["prepare_data"]
