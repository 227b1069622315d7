"""Style utilities for QC figures.

Provides consistent styling across all QC plots:
- Color palettes for batches and keep/reject status
- Matplotlib style configuration
- Figure saving utilities
"""

from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

logger = logging.getLogger(__name__)

# Keep/reject colors
STATUS_COLORS: Dict[str, str] = {
    "kept": "#3498db",          # Blue
    "removed": "#e74c3c",       # Red
}

THRESHOLD_COLOR = "#c0392b"


def set_publication_style():
    """Set matplotlib style for publication-quality figures."""
    import matplotlib.pyplot as plt

    try:
        plt.style.use("seaborn-v0_8-whitegrid")
    except OSError:
        try:
            plt.style.use("seaborn-whitegrid")
        except OSError:
            pass

    plt.rcParams.update({
        "font.size": 10,
        "axes.titlesize": 12,
        "axes.labelsize": 10,
        "xtick.labelsize": 9,
        "ytick.labelsize": 9,
        "legend.fontsize": 9,
        "figure.dpi": 100,
        "savefig.dpi": 200,
        "savefig.bbox": "tight",
        "axes.spines.top": False,
        "axes.spines.right": False,
    })


def get_batch_palette(batches: List[str]) -> Dict[str, str]:
    """Map batch labels to distinct colors."""
    import seaborn as sns

    unique = sorted(set(map(str, batches)))
    colors = sns.color_palette("tab10" if len(unique) <= 10 else "husl", len(unique))
    return {b: colors[i] for i, b in enumerate(unique)}


def create_figure(
    nrows: int = 1,
    ncols: int = 1,
    figsize: Optional[tuple] = None,
    **kwargs,
):
    """Create matplotlib figure with consistent styling.

    Args:
        nrows: Number of subplot rows
        ncols: Number of subplot columns
        figsize: Figure size (width, height) in inches
        **kwargs: Additional arguments to plt.subplots

    Returns:
        Tuple of (figure, axes)
    """
    import matplotlib.pyplot as plt

    set_publication_style()

    if figsize is None:
        figsize = (5 * ncols + 1, 4 * nrows + 0.5)

    fig, axes = plt.subplots(nrows, ncols, figsize=figsize, **kwargs)
    return fig, axes


def save_figure(
    fig,
    output_path: Union[str, Path],
    dpi: int = 200,
    close: bool = True,
) -> Path:
    """Save matplotlib figure with consistent settings.

    Args:
        fig: Matplotlib figure object
        output_path: Path to save figure
        dpi: Resolution
        close: Whether to close figure after saving

    Returns:
        Path to saved figure
    """
    import matplotlib.pyplot as plt

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig.savefig(
        output_path,
        dpi=dpi,
        bbox_inches="tight",
        facecolor="white",
        edgecolor="none",
    )

    if close:
        plt.close(fig)

    logger.debug(f"Saved figure to {output_path}")
    return output_path
