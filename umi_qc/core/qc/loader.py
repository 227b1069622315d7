"""Data loader for UMI count matrices and cell annotations.

Reads the tab-delimited genes x cells matrix and the per-cell
annotation table, validates them against each other and returns an
immutable :class:`QCDataset`.
"""

import logging
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from .config import LoaderConfig, ControlSetConfig, default_control_sets
from .dataset import QCDataset, resolve_control_sets

logger = logging.getLogger(__name__)


class DataLoader:
    """Loader with validation.

    Parameters
    ----------
    config : LoaderConfig
        Loader configuration

    Example
    -------
    >>> from umi_qc.core.qc import DataLoader, LoaderConfig
    >>> loader = DataLoader(LoaderConfig(cell_id_col="sample_id"))
    >>> dataset = loader.load_dataset("molecules.txt", "annotation.txt")
    """

    def __init__(self, config: Optional[LoaderConfig] = None):
        self.config = config or LoaderConfig()

    def load_counts(self, path: Path) -> pd.DataFrame:
        """Load a genes x cells UMI count matrix.

        Parameters
        ----------
        path : Path
            Tab-delimited file; header row of cell ids, first column gene ids

        Returns
        -------
        pd.DataFrame
            Integer count matrix indexed by gene id

        Raises
        ------
        FileNotFoundError
            If the file does not exist
        ValueError
            If the matrix is empty, non-numeric, negative, non-integer or
            has duplicated gene/cell identifiers
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Count matrix not found: {path}")

        df = pd.read_csv(path, sep=self.config.sep, index_col=0)
        if df.empty:
            raise ValueError(f"Count matrix {path} is empty")

        df.index = df.index.astype(str)
        df.columns = df.columns.astype(str)
        df.index.name = "gene_id"
        df.columns.name = "cell_id"

        dup_genes = df.index[df.index.duplicated()].unique()
        if len(dup_genes) > 0:
            raise ValueError(
                f"Duplicate gene ids in {path}: {list(dup_genes[:5])}"
            )
        dup_cells = df.columns[df.columns.duplicated()].unique()
        if len(dup_cells) > 0:
            raise ValueError(
                f"Duplicate cell ids in {path}: {list(dup_cells[:5])}"
            )

        numeric = df.apply(pd.to_numeric, errors="coerce")
        n_bad = int(numeric.isna().to_numpy().sum())
        if n_bad:
            raise ValueError(f"Count matrix {path} has {n_bad} non-numeric entries")

        values = numeric.to_numpy(dtype=float)
        if (values < 0).any():
            raise ValueError(f"Count matrix {path} contains negative counts")
        if not np.all(np.equal(np.mod(values, 1), 0)):
            raise ValueError(f"Count matrix {path} contains non-integer counts")

        counts = numeric.astype(np.int64)
        logger.info(
            f"Loaded count matrix: {counts.shape[0]} genes x {counts.shape[1]} cells"
        )
        return counts

    def load_annotation(self, path: Path) -> pd.DataFrame:
        """Load the per-cell annotation table.

        Parameters
        ----------
        path : Path
            Tab-delimited file with a header row

        Returns
        -------
        pd.DataFrame
            Annotation indexed by cell id
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Cell annotation not found: {path}")

        df = pd.read_csv(path, sep=self.config.sep)
        if df.empty:
            raise ValueError(f"Cell annotation {path} is empty")

        missing = [c for c in self.config.required_annotation_cols if c not in df.columns]
        if missing:
            raise ValueError(f"Required columns missing from annotation: {missing}")

        cell_id_col = self.config.cell_id_col
        if cell_id_col not in df.columns:
            raise ValueError(f"Cell ID column '{cell_id_col}' not found in {path}")

        df[cell_id_col] = df[cell_id_col].astype(str)
        n_dups = int(df[cell_id_col].duplicated().sum())
        if n_dups > 0:
            raise ValueError(f"Annotation {path} has {n_dups} duplicate cell ids")

        df = df.set_index(cell_id_col, drop=False)
        df.index.name = "cell_id"
        return df

    def align(self, counts: pd.DataFrame, annotation: pd.DataFrame) -> pd.DataFrame:
        """Reorder annotation rows to match the matrix columns.

        Raises
        ------
        ValueError
            If the two inputs do not describe exactly the same cells
        """
        matrix_ids = set(counts.columns)
        annotation_ids = set(annotation.index)
        missing_in_annotation = sorted(matrix_ids - annotation_ids)
        missing_in_matrix = sorted(annotation_ids - matrix_ids)
        if missing_in_annotation or missing_in_matrix:
            raise ValueError(
                "Cell identifiers differ between matrix and annotation: "
                f"{len(missing_in_annotation)} missing in annotation "
                f"(e.g. {missing_in_annotation[:3]}), "
                f"{len(missing_in_matrix)} missing in matrix "
                f"(e.g. {missing_in_matrix[:3]})"
            )
        return annotation.loc[counts.columns]

    def build_dataset(
        self,
        counts: pd.DataFrame,
        annotation: pd.DataFrame,
        control_sets: Optional[List[ControlSetConfig]] = None,
    ) -> QCDataset:
        """Assemble a validated dataset from in-memory frames."""
        if control_sets is None:
            control_sets = default_control_sets()

        annotation = self.align(counts, annotation)
        present, missing = resolve_control_sets(counts.index, control_sets)
        for name, genes in missing.items():
            logger.warning(
                f"Control set '{name}': {len(genes)} genes absent from matrix, skipped"
            )
        for name, genes in present.items():
            if not genes:
                logger.warning(f"Control set '{name}' matches no gene in the matrix")
            else:
                logger.info(f"Control set '{name}': {len(genes)} genes")

        return QCDataset(
            counts=counts,
            annotation=annotation,
            control_sets=present,
            missing_control_genes=missing,
        )

    def load_dataset(
        self,
        counts_path: Path,
        annotation_path: Path,
        control_sets: Optional[List[ControlSetConfig]] = None,
    ) -> QCDataset:
        """Load, validate and align both input files.

        Parameters
        ----------
        counts_path : Path
            Path to the count matrix
        annotation_path : Path
            Path to the cell annotation table
        control_sets : List[ControlSetConfig], optional
            Control feature sets (default: ERCC spike-ins and MT genes)

        Returns
        -------
        QCDataset
            Validated dataset
        """
        counts = self.load_counts(counts_path)
        annotation = self.load_annotation(annotation_path)
        return self.build_dataset(counts, annotation, control_sets)


def drop_undetected_genes(dataset: QCDataset) -> QCDataset:
    """Remove genes with zero counts in every cell."""
    detected = (dataset.counts > 0).any(axis=1)
    n_dropped = int((~detected).sum())
    if n_dropped:
        logger.info(f"Dropping {n_dropped} genes not detected in any cell")
    if not detected.any():
        raise ValueError("No gene is detected in any cell")
    return dataset.subset(genes=detected)
