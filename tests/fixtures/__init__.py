"""Test fixtures for UMI-QC.

Provides synthetic count matrix generators and test utilities.
"""

from .mock_counts import (
    create_mock_annotation,
    create_mock_counts,
    create_mock_dataset,
    write_mock_inputs,
)

__all__ = [
    "create_mock_annotation",
    "create_mock_counts",
    "create_mock_dataset",
    "write_mock_inputs",
]
