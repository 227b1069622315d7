"""QC session engine.

Runs the full expression QC workflow on a :class:`QCDataset`:
metrics -> manual, default and automatic cell filters -> comparison ->
cell filtering -> gene filtering. Every step returns new values; the
input dataset is left untouched.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .compare import combine_masks, overlap_summary, venn_counts
from .config import QCConfig
from .dataset import QCDataset
from .genes import FilterResult, filter_dataset
from .loader import DataLoader, drop_undetected_genes
from .metrics import cell_qc_table, compute_cell_metrics, compute_gene_metrics
from .outliers import MultivariateOutlierDetector, MultivariateOutlierResult
from .rules import MADRule, default_rules, evaluate_rules, manual_rules


@dataclass
class QCResult:
    """Result from a QC session.

    Attributes
    ----------
    dataset : QCDataset
        Dataset the filters were evaluated on (after dropping undetected genes)
    cell_metrics : pd.DataFrame
        Per-cell metric table
    gene_metrics : pd.DataFrame
        Per-gene metric table over all genes of ``dataset``
    manual_rules : pd.DataFrame
        Keep-mask of every manual sub-rule
    default_rules : pd.DataFrame
        Keep-mask of every default sub-rule
    deviations : pd.DataFrame
        Robust z-scores of the MAD-tested metrics
    automatic : MultivariateOutlierResult
        Multivariate outlier detection output
    filters : pd.DataFrame
        Combined keep-masks: manual, default, automatic
    selected_filter : str
        Name of the mask used for filtering
    venn : pd.DataFrame
        Cell counts per region of the filter Venn partition
    overlap : pd.DataFrame
        Pairwise intersection sizes of the filters
    filtered : FilterResult
        Cell- then gene-filtered dataset with both masks
    """

    dataset: QCDataset
    cell_metrics: pd.DataFrame
    gene_metrics: pd.DataFrame
    manual_rules: pd.DataFrame
    default_rules: pd.DataFrame
    deviations: pd.DataFrame
    automatic: MultivariateOutlierResult
    filters: pd.DataFrame
    selected_filter: str
    venn: pd.DataFrame
    overlap: pd.DataFrame
    filtered: FilterResult
    dropped_genes: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def cell_table(self) -> pd.DataFrame:
        """Annotations, metrics, rule masks and filters for every cell."""
        table = cell_qc_table(self.dataset, self.cell_metrics)
        table = table.join(self.manual_rules).join(self.default_rules)
        table = table.join(self.deviations)
        table = table.join(self.automatic.projection)
        table = table.join(self.automatic.distances)
        return table.join(self.filters)

    @property
    def gene_table(self) -> pd.DataFrame:
        table = self.gene_metrics.copy()
        table["use"] = self.filtered.gene_mask.reindex(table.index, fill_value=False)
        return table

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "cells_total": int(self.dataset.n_cells),
            "genes_total": int(self.dataset.n_genes),
            "genes_dropped_undetected": int(self.dropped_genes),
            "cells_kept": {name: int(self.filters[name].sum()) for name in self.filters.columns},
            "rejected_by_rule": {
                name: int((~mask).sum())
                for masks in (self.manual_rules, self.default_rules)
                for name, mask in masks.items()
            },
            "selected_filter": self.selected_filter,
            "automatic": self.automatic.to_dict(),
            "filtered": self.filtered.to_dict(),
            "control_sets": {
                name: len(genes) for name, genes in self.dataset.control_sets.items()
            },
            "missing_control_genes": {
                name: list(genes)
                for name, genes in self.dataset.missing_control_genes.items()
            },
            "warnings": self.warnings,
        }


class QCEngine:
    """Expression QC engine.

    Parameters
    ----------
    config : QCConfig, optional
        Session configuration
    logger : logging.Logger, optional
        Logger for progress messages

    Example
    -------
    >>> from umi_qc.core.qc import QCEngine, QCConfig
    >>> engine = QCEngine(QCConfig())
    >>> result = engine.run_files("molecules.txt", "annotation.txt")
    >>> result.filters.sum()
    """

    def __init__(
        self,
        config: Optional[QCConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or QCConfig()
        self.logger = logger or logging.getLogger(__name__)

    def load(self, counts_path: Path, annotation_path: Path) -> QCDataset:
        """Load the input files with the configured loader settings."""
        loader = DataLoader(self.config.loader)
        return loader.load_dataset(counts_path, annotation_path, self.config.control_sets)

    def evaluate_manual(self, table: pd.DataFrame) -> pd.DataFrame:
        rules = manual_rules(self.config.manual, batch_col=self.config.loader.batch_col)
        return evaluate_rules(rules, table)

    def evaluate_default(self, table: pd.DataFrame, dataset: QCDataset) -> pd.DataFrame:
        rules = default_rules(self.config.default, dataset.control_sets.keys())
        return evaluate_rules(rules, table)

    def mad_deviations(self, table: pd.DataFrame, dataset: QCDataset) -> pd.DataFrame:
        rules = default_rules(self.config.default, dataset.control_sets.keys())
        columns = [rule.deviations(table) for rule in rules if isinstance(rule, MADRule)]
        return pd.concat(columns, axis=1)

    def run(self, dataset: QCDataset) -> QCResult:
        """Run all QC steps on a loaded dataset.

        Parameters
        ----------
        dataset : QCDataset
            Loaded dataset

        Returns
        -------
        QCResult
            Metrics, masks, comparison tables and the filtered dataset
        """
        warnings: List[str] = []
        for name, genes in dataset.missing_control_genes.items():
            warnings.append(f"{name}: {len(genes)} control genes absent from matrix")

        dropped = 0
        if self.config.drop_undetected_genes:
            n_before = dataset.n_genes
            dataset = drop_undetected_genes(dataset)
            dropped = n_before - dataset.n_genes

        self.logger.info(
            f"Computing QC metrics for {dataset.n_cells} cells x {dataset.n_genes} genes"
        )
        cell_metrics = compute_cell_metrics(dataset)
        gene_metrics = compute_gene_metrics(dataset)
        table = cell_qc_table(dataset, cell_metrics)

        manual = self.evaluate_manual(table)
        default = self.evaluate_default(table, dataset)
        deviations = self.mad_deviations(table, dataset)
        automatic = MultivariateOutlierDetector(self.config.automatic).detect(cell_metrics)

        filters = pd.DataFrame(
            {
                "manual": combine_masks(dict(manual.items())),
                "default": combine_masks(dict(default.items())),
                "automatic": automatic.keep,
            }
        )
        for name in filters.columns:
            self.logger.info(
                f"Filter {name} keeps {int(filters[name].sum())}/{len(filters)} cells"
            )

        masks = {name: filters[name] for name in filters.columns}
        venn = venn_counts(masks)
        overlap = overlap_summary(masks)

        selected = self.config.selected_filter
        self.logger.info(f"Filtering cells with the {selected} filter")
        filtered = filter_dataset(dataset, filters[selected], self.config.genes)

        return QCResult(
            dataset=dataset,
            cell_metrics=cell_metrics,
            gene_metrics=gene_metrics,
            manual_rules=manual,
            default_rules=default,
            deviations=deviations,
            automatic=automatic,
            filters=filters,
            selected_filter=selected,
            venn=venn,
            overlap=overlap,
            filtered=filtered,
            dropped_genes=dropped,
            warnings=warnings,
        )

    def run_files(self, counts_path: Path, annotation_path: Path) -> QCResult:
        """Load both input files and run the session."""
        return self.run(self.load(counts_path, annotation_path))
