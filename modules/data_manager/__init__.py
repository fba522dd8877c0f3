"""
Data Manager Module
===================

Responsibility:
- Loading of the source dataset (CSV, Parquet, Excel or a bundled scikit-learn dataset).
- Validation of the target and feature columns.
- Per-column statistics for the data quality report.
"""

from .data_manager import DataManager

__all__ = ['DataManager']
