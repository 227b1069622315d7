"""Cell filter rules.

Provides:
- ThresholdRule: fixed-threshold comparison on one column
- MADRule: median-absolute-deviation outlier rule on one column
- AnnotationFlagRule: exclusion of cells flagged in a boolean column
- manual_rules / default_rules: the two rule sets used by the QC session
- evaluate_rules: per-rule keep-mask table

Every rule maps a per-cell table (annotations joined with metrics) to a
boolean keep-mask indexed like the table. Rules never modify the table.
"""

import logging
import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence, Union

import numpy as np
import pandas as pd

from ...utils.stats import mad_outliers, robust_zscore
from .config import DefaultFilterConfig, ManualFilterConfig
from .metrics import CellMetric, ControlMetric

logger = logging.getLogger(__name__)

Column = Union[CellMetric, str]

TRUE_STRINGS = ("true", "t", "1", "yes")


class Comparison(Enum):
    """Comparison applied as ``value <op> threshold``; True keeps the cell."""

    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"
    EQ = "eq"
    NE = "ne"

    @property
    def func(self):
        return getattr(operator, self.value)


def _column_name(column: Column) -> str:
    return column.value if isinstance(column, CellMetric) else str(column)


def _require_column(table: pd.DataFrame, column: str, rule: str) -> pd.Series:
    if column not in table.columns:
        raise ValueError(f"Rule '{rule}': column '{column}' not found in cell table")
    return table[column]


class CellRule(ABC):
    """Abstract base class for cell filter rules.

    Attributes
    ----------
    name : str
        Unique rule name, used as the mask column name
    """

    name: str

    @abstractmethod
    def evaluate(self, table: pd.DataFrame) -> pd.Series:
        """Return the boolean keep-mask for every row of ``table``."""

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class ThresholdRule(CellRule):
    """Keep cells where ``table[column] <comparison> threshold``."""

    name: str
    column: Column
    threshold: Union[float, str]
    comparison: Comparison = Comparison.GT

    def evaluate(self, table: pd.DataFrame) -> pd.Series:
        values = _require_column(table, _column_name(self.column), self.name)
        keep = self.comparison.func(values, self.threshold)
        return pd.Series(np.asarray(keep, dtype=bool), index=table.index, name=self.name)

    def describe(self) -> str:
        return f"{_column_name(self.column)} {self.comparison.value} {self.threshold}"


@dataclass(frozen=True)
class MADRule(CellRule):
    """Reject cells more than ``nmads`` median absolute deviations from the median."""

    name: str
    column: Column
    nmads: float = 5.0
    direction: str = "both"

    def outliers(self, table: pd.DataFrame) -> pd.Series:
        values = _require_column(table, _column_name(self.column), self.name)
        flags = mad_outliers(values.to_numpy(dtype=float), self.nmads, self.direction)
        return pd.Series(flags, index=table.index, name=self.name)

    def evaluate(self, table: pd.DataFrame) -> pd.Series:
        return ~self.outliers(table)

    def deviations(self, table: pd.DataFrame) -> pd.Series:
        """Robust z-scores of the rule column, for reporting."""
        values = _require_column(table, _column_name(self.column), self.name)
        return pd.Series(
            robust_zscore(values.to_numpy(dtype=float)),
            index=table.index,
            name=f"robust_z_{_column_name(self.column)}",
        )

    def describe(self) -> str:
        return f"|{_column_name(self.column)} - median| <= {self.nmads} MAD ({self.direction})"


@dataclass(frozen=True)
class AnnotationFlagRule(CellRule):
    """Reject cells whose boolean annotation column is True.

    A missing column rejects nothing.
    """

    name: str
    column: str

    def evaluate(self, table: pd.DataFrame) -> pd.Series:
        if self.column not in table.columns:
            return pd.Series(True, index=table.index, name=self.name)
        column = table[self.column]
        if pd.api.types.is_bool_dtype(column) or pd.api.types.is_numeric_dtype(column):
            flags = column.fillna(0).astype(bool).to_numpy()
        else:
            # text tables spell booleans as TRUE/FALSE
            flags = column.astype(str).str.strip().str.lower().isin(TRUE_STRINGS).to_numpy()
        return pd.Series(~flags, index=table.index, name=self.name)

    def describe(self) -> str:
        return f"not {self.column}"


def manual_rules(config: ManualFilterConfig, batch_col: str = "batch") -> List[CellRule]:
    """Fixed-threshold rules of the manual filter.

    Parameters
    ----------
    config : ManualFilterConfig
        Manual thresholds
    batch_col : str
        Annotation column used for batch exclusion

    Returns
    -------
    List[CellRule]
        Library-size floor, detected-gene floor, one ceiling per configured
        control set and one exclusion per configured batch
    """
    rules: List[CellRule] = [
        ThresholdRule(
            "filter_by_total_counts",
            CellMetric.TOTAL_COUNTS,
            config.min_total_counts,
            Comparison.GT,
        ),
        ThresholdRule(
            "filter_by_expr_features",
            CellMetric.DETECTED_GENES,
            config.min_detected_genes,
            Comparison.GT,
        ),
    ]
    for set_name, ceiling in config.max_pct_control.items():
        rules.append(
            ThresholdRule(
                f"filter_by_{set_name}",
                ControlMetric.PCT_COUNTS.column(set_name),
                ceiling,
                Comparison.LT,
            )
        )
    for batch in config.exclude_batches:
        rules.append(
            ThresholdRule(f"exclude_batch_{batch}", batch_col, batch, Comparison.NE)
        )
    return rules


def default_rules(
    config: DefaultFilterConfig,
    control_sets: Iterable[str],
) -> List[CellRule]:
    """Rules of the MAD-based default filter.

    Library size and detected genes are tested with the MAD rule; every
    control set gets a percentage ceiling; control wells are excluded.
    """
    rules: List[CellRule] = [
        MADRule(
            "filter_on_total_counts",
            CellMetric.TOTAL_COUNTS,
            config.nmads,
            config.direction,
        ),
        MADRule(
            "filter_on_total_features",
            CellMetric.DETECTED_GENES,
            config.nmads,
            config.direction,
        ),
    ]
    for set_name in control_sets:
        rules.append(
            ThresholdRule(
                f"filter_on_pct_counts_{set_name}",
                ControlMetric.PCT_COUNTS.column(set_name),
                config.max_pct_control,
                Comparison.LE,
            )
        )
    if config.cell_control_col:
        rules.append(AnnotationFlagRule("filter_on_cell_control", config.cell_control_col))
    return rules


def evaluate_rules(rules: Sequence[CellRule], table: pd.DataFrame) -> pd.DataFrame:
    """Evaluate rules into a table of keep-masks (one column per rule)."""
    names = [rule.name for rule in rules]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate rule names: {names}")

    masks = pd.DataFrame(index=table.index)
    for rule in rules:
        keep = rule.evaluate(table)
        logger.debug(
            f"Rule {rule.name} ({rule.describe()}): "
            f"{int((~keep).sum())}/{len(keep)} cells rejected"
        )
        masks[rule.name] = keep
    return masks
