"""Pytest configuration and shared fixtures for UMI-QC tests."""

import os
import sys
from pathlib import Path

os.environ.setdefault("MPLBACKEND", "Agg")

import pytest
import numpy as np
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.fixtures import (
    create_mock_annotation,
    create_mock_counts,
    create_mock_dataset,
    write_mock_inputs,
)
from umi_qc.core.qc import (
    ControlSetConfig,
    DataLoader,
    ManualFilterConfig,
    QCConfig,
    QCDataset,
)


# ============================================================================
# Mock Data Fixtures
# ============================================================================


@pytest.fixture
def mock_counts() -> pd.DataFrame:
    """Genes x cells counts: 300 endogenous, 20 ERCC, 5 MT genes, 60 cells."""
    return create_mock_counts()


@pytest.fixture
def mock_annotation(mock_counts) -> pd.DataFrame:
    """Annotation table matching ``mock_counts``."""
    return create_mock_annotation(list(mock_counts.columns))


@pytest.fixture
def mock_dataset() -> QCDataset:
    """QCDataset built from the mock counts."""
    return create_mock_dataset()


@pytest.fixture
def mock_inputs(tmp_path, mock_counts, mock_annotation):
    """Mock counts and annotation written as tab-delimited files."""
    return write_mock_inputs(tmp_path / "inputs", mock_counts, mock_annotation)


@pytest.fixture
def tiny_dataset() -> QCDataset:
    """Hand-written 5 genes x 4 cells dataset.

    cell_d has an empty library.
    """
    counts = pd.DataFrame(
        {
            "cell_a": [10, 0, 3, 2, 1],
            "cell_b": [5, 5, 0, 0, 4],
            "cell_c": [0, 2, 2, 8, 0],
            "cell_d": [0, 0, 0, 0, 0],
        },
        index=["GENE1", "GENE2", "GENE3", "ERCC-00001", "MTGENE"],
    )
    annotation = pd.DataFrame(
        {
            "batch": ["b1", "b1", "b2", "b2"],
            "sample_id": ["cell_a", "cell_b", "cell_c", "cell_d"],
        },
        index=["cell_a", "cell_b", "cell_c", "cell_d"],
    )
    control_sets = [
        ControlSetConfig(name="ERCC", prefix="ERCC-"),
        ControlSetConfig(name="MT", genes=["MTGENE", "MTABSENT"]),
    ]
    return DataLoader().build_dataset(counts, annotation, control_sets)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def relaxed_config() -> QCConfig:
    """QC config with thresholds suited to the mock data."""
    return QCConfig(
        manual=ManualFilterConfig(
            min_total_counts=500,
            min_detected_genes=100,
            max_pct_control={"MT": 20.0},
            exclude_batches=["NA19098.r2"],
        ),
    )


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir
