"""Combining and comparing cell keep-masks."""

import itertools
from typing import Mapping

import numpy as np
import pandas as pd


def _validate_masks(masks: Mapping[str, pd.Series]) -> pd.Index:
    if not masks:
        raise ValueError("At least one mask is required")
    names = list(masks)
    index = masks[names[0]].index
    for name in names[1:]:
        if not masks[name].index.equals(index):
            raise ValueError(
                f"Mask '{name}' is not aligned with mask '{names[0]}'"
            )
    for name, mask in masks.items():
        if not pd.api.types.is_bool_dtype(mask):
            raise ValueError(f"Mask '{name}' is not boolean (dtype {mask.dtype})")
    return index


def combine_masks(masks: Mapping[str, pd.Series], name: str = "use") -> pd.Series:
    """Logical AND of keep-masks sharing one cell index."""
    index = _validate_masks(masks)
    combined = np.ones(len(index), dtype=bool)
    for mask in masks.values():
        combined &= mask.to_numpy()
    return pd.Series(combined, index=index, name=name)


def venn_counts(masks: Mapping[str, pd.Series]) -> pd.DataFrame:
    """Cell counts for every region of the Venn partition.

    Parameters
    ----------
    masks : Mapping[str, pd.Series]
        Named keep-masks over the same cells

    Returns
    -------
    pd.DataFrame
        2^N rows, one 0/1 membership column per mask and a ``count``
        column; the counts sum to the number of cells
    """
    _validate_masks(masks)
    names = list(masks)
    matrix = np.column_stack([masks[n].to_numpy() for n in names])

    rows = []
    for combo in itertools.product([0, 1], repeat=len(names)):
        hit = np.all(matrix == np.array(combo, dtype=bool), axis=1)
        rows.append(list(combo) + [int(hit.sum())])
    return pd.DataFrame(rows, columns=names + ["count"])


def overlap_summary(masks: Mapping[str, pd.Series]) -> pd.DataFrame:
    """Sizes of each mask and of every pairwise intersection.

    Returns
    -------
    pd.DataFrame
        Square table; the diagonal holds the number of kept cells per mask
    """
    _validate_masks(masks)
    names = list(masks)
    table = pd.DataFrame(0, index=names, columns=names, dtype=np.int64)
    for a in names:
        for b in names:
            table.loc[a, b] = int((masks[a].to_numpy() & masks[b].to_numpy()).sum())
    return table
