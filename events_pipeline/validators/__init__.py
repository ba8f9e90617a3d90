"""Dataset validators for data quality."""

from .dataset import (
    DatasetReport,
    DomainStats,
    domain_metrics,
    enforce_quality_gate,
    is_valid_record,
    validate_dataset,
    validate_records,
)

__all__ = [
    "DatasetReport",
    "DomainStats",
    "domain_metrics",
    "enforce_quality_gate",
    "is_valid_record",
    "validate_dataset",
    "validate_records",
]
