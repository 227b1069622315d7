"""Immutable container for a count matrix and its cell annotations."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class QCDataset:
    """A genes x cells UMI count matrix with aligned cell annotations.

    Instances are never modified in place; every filtering step returns a
    new dataset built from row/column subsets of the original frames.

    Attributes
    ----------
    counts : pd.DataFrame
        Gene-by-cell integer count matrix
    annotation : pd.DataFrame
        Cell annotations indexed by cell id, in matrix column order
    control_sets : Mapping[str, Tuple[str, ...]]
        Control feature sets restricted to genes present in ``counts``
    missing_control_genes : Mapping[str, Tuple[str, ...]]
        Configured control genes absent from the matrix
    """

    counts: pd.DataFrame
    annotation: pd.DataFrame
    control_sets: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    missing_control_genes: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self):
        if not self.counts.columns.equals(self.annotation.index):
            raise ValueError(
                "Annotation index must match count matrix columns "
                f"({self.annotation.shape[0]} annotated vs "
                f"{self.counts.shape[1]} matrix cells)"
            )
        object.__setattr__(
            self, "control_sets", MappingProxyType(dict(self.control_sets))
        )
        object.__setattr__(
            self,
            "missing_control_genes",
            MappingProxyType(dict(self.missing_control_genes)),
        )

    @property
    def n_genes(self) -> int:
        return self.counts.shape[0]

    @property
    def n_cells(self) -> int:
        return self.counts.shape[1]

    @property
    def gene_ids(self) -> pd.Index:
        return self.counts.index

    @property
    def cell_ids(self) -> pd.Index:
        return self.counts.columns

    @property
    def control_genes(self) -> pd.Index:
        """Union of all control sets, in matrix order."""
        members = set()
        for genes in self.control_sets.values():
            members.update(genes)
        return self.counts.index[self.counts.index.isin(members)]

    @property
    def is_control(self) -> pd.Series:
        return pd.Series(
            self.counts.index.isin(self.control_genes),
            index=self.counts.index,
            name="is_control",
        )

    @property
    def endogenous_genes(self) -> pd.Index:
        return self.counts.index[~self.is_control.to_numpy()]

    def control_set_labels(self) -> pd.Series:
        """Name of the control set each gene belongs to ('' for endogenous)."""
        labels = pd.Series("", index=self.counts.index, name="control_set")
        for name, genes in self.control_sets.items():
            labels.loc[list(genes)] = name
        return labels

    def subset(
        self,
        cells: Optional[Sequence] = None,
        genes: Optional[Sequence] = None,
    ) -> "QCDataset":
        """Return a new dataset restricted to the given cells and/or genes.

        ``cells`` and ``genes`` accept either identifier lists or boolean
        masks aligned to the current cell/gene index.
        """
        cell_index = self._resolve(self.cell_ids, cells)
        gene_index = self._resolve(self.gene_ids, genes)

        counts = self.counts.loc[gene_index, cell_index].copy()
        annotation = self.annotation.loc[cell_index].copy()
        kept = set(gene_index)
        control_sets = {
            name: tuple(g for g in members if g in kept)
            for name, members in self.control_sets.items()
        }
        return QCDataset(
            counts=counts,
            annotation=annotation,
            control_sets=control_sets,
            missing_control_genes=dict(self.missing_control_genes),
        )

    @staticmethod
    def _resolve(index: pd.Index, selector) -> pd.Index:
        if selector is None:
            return index
        if isinstance(selector, pd.Series) and selector.dtype == bool:
            if not selector.index.equals(index):
                selector = selector.reindex(index, fill_value=False)
            return index[selector.to_numpy()]
        arr = np.asarray(selector)
        if arr.dtype == bool:
            if arr.shape[0] != len(index):
                raise ValueError(
                    f"Boolean mask of length {arr.shape[0]} does not match "
                    f"index of length {len(index)}"
                )
            return index[arr]
        missing = pd.Index(arr).difference(index)
        if len(missing) > 0:
            raise ValueError(f"Unknown identifiers: {list(missing[:5])}")
        return pd.Index(arr)


def resolve_control_sets(
    gene_ids: pd.Index,
    control_sets: Iterable,
) -> Tuple[Dict[str, Tuple[str, ...]], Dict[str, Tuple[str, ...]]]:
    """Resolve configured control sets against a gene index.

    Parameters
    ----------
    gene_ids : pd.Index
        Genes present in the count matrix
    control_sets : Iterable[ControlSetConfig]
        Control set definitions

    Returns
    -------
    Tuple[Dict, Dict]
        (present genes per set, configured-but-missing genes per set)
    """
    present: Dict[str, Tuple[str, ...]] = {}
    missing: Dict[str, Tuple[str, ...]] = {}
    as_str = gene_ids.astype(str)
    for control_set in control_sets:
        members: List[str] = []
        if control_set.prefix:
            members.extend(gene_ids[as_str.str.startswith(control_set.prefix)].tolist())
        explicit = list(dict.fromkeys(control_set.genes))
        found = set(gene_ids[gene_ids.isin(explicit)])
        members.extend(g for g in explicit if g in found and g not in members)
        present[control_set.name] = tuple(members)
        absent = [g for g in explicit if g not in found]
        if absent:
            missing[control_set.name] = tuple(absent)
    return present, missing
