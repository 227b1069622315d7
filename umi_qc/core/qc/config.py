"""Configuration classes for expression QC.

All thresholds are configurable via YAML so the same code runs on
other UMI datasets than the iPSC walkthrough.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


# Human mitochondrially-encoded protein-coding genes (Ensembl ids)
MT_GENES: List[str] = [
    "ENSG00000198899",
    "ENSG00000198727",
    "ENSG00000198888",
    "ENSG00000198886",
    "ENSG00000212907",
    "ENSG00000198786",
    "ENSG00000198695",
    "ENSG00000198712",
    "ENSG00000198804",
    "ENSG00000198763",
    "ENSG00000228253",
    "ENSG00000198938",
    "ENSG00000198840",
]

FILTER_NAMES = ("manual", "default", "automatic")


@dataclass
class LoaderConfig:
    """Configuration for reading the count matrix and annotation table.

    Attributes
    ----------
    cell_id_col : str
        Annotation column holding cell identifiers (matrix column names)
    batch_col : str
        Annotation column holding batch identifiers
    sep : str
        Field delimiter of both input files
    required_annotation_cols : List[str]
        Columns that must be present in the annotation table
    """

    cell_id_col: str = "sample_id"
    batch_col: str = "batch"
    sep: str = "\t"
    required_annotation_cols: List[str] = field(
        default_factory=lambda: ["individual", "replicate", "batch", "sample_id"]
    )


@dataclass
class ControlSetConfig:
    """A named set of control features.

    Either ``genes`` (explicit identifiers) or ``prefix`` (identifier
    prefix) selects the members; both may be combined.
    """

    name: str
    genes: List[str] = field(default_factory=list)
    prefix: Optional[str] = None


def default_control_sets() -> List[ControlSetConfig]:
    return [
        ControlSetConfig(name="ERCC", prefix="ERCC-"),
        ControlSetConfig(name="MT", genes=list(MT_GENES)),
    ]


@dataclass
class ManualFilterConfig:
    """Fixed thresholds for the manual cell filter.

    Attributes
    ----------
    min_total_counts : float
        Keep cells with strictly more molecules than this
    min_detected_genes : float
        Keep cells with strictly more detected genes than this
    max_pct_control : Dict[str, float]
        Keep cells with a control-set percentage strictly below the value
    exclude_batches : List[str]
        Batches removed entirely
    """

    min_total_counts: float = 25000
    min_detected_genes: float = 7000
    max_pct_control: Dict[str, float] = field(default_factory=lambda: {"MT": 10.0})
    exclude_batches: List[str] = field(default_factory=lambda: ["NA19098.r2"])


@dataclass
class DefaultFilterConfig:
    """Configuration for the MAD-based default cell filter.

    Attributes
    ----------
    nmads : float
        Number of median absolute deviations defining an outlier
    direction : str
        Which side of the median is tested (both, lower, higher)
    max_pct_control : float
        Percentage ceiling applied to every control set
    cell_control_col : str, optional
        Boolean annotation column marking control wells
    """

    nmads: float = 5.0
    direction: str = "both"
    max_pct_control: float = 80.0
    cell_control_col: Optional[str] = "is_cell_control"


@dataclass
class AutomaticFilterConfig:
    """Configuration for PCA-based multivariate outlier detection.

    Attributes
    ----------
    n_components : int
        Number of principal components kept
    quantile : float
        Chi-squared quantile used as the distance cutoff
    support_fraction : float, optional
        Fraction of points in the MCD support (None = sklearn default)
    random_seed : int
        Seed for the MCD estimator
    """

    n_components: int = 2
    quantile: float = 0.975
    support_fraction: Optional[float] = None
    random_seed: int = 1234


@dataclass
class GeneFilterConfig:
    """Configuration for the gene detection filter.

    Attributes
    ----------
    min_count : int
        A gene is detected in a cell with strictly more counts than this
    min_cells : int
        Minimum number of cells the gene must be detected in
    """

    min_count: int = 1
    min_cells: int = 2


@dataclass
class ExportConfig:
    """Configuration for session outputs."""

    h5ad_name: str = "umi_qc.h5ad"
    log_layer: str = "logcounts_raw"
    write_plots: bool = True
    top_n_genes: int = 50
    dpi: int = 200


@dataclass
class QCConfig:
    """Master configuration for a QC session.

    Attributes
    ----------
    loader : LoaderConfig
        Input parsing configuration
    control_sets : List[ControlSetConfig]
        Control feature sets used for ratio metrics
    manual : ManualFilterConfig
        Manual threshold filter
    default : DefaultFilterConfig
        MAD default filter
    automatic : AutomaticFilterConfig
        Multivariate outlier filter
    genes : GeneFilterConfig
        Gene filter
    export : ExportConfig
        Output configuration
    selected_filter : str
        Cell mask applied to produce the filtered dataset
    drop_undetected_genes : bool
        Remove genes with zero counts in every cell before QC
    """

    loader: LoaderConfig = field(default_factory=LoaderConfig)
    control_sets: List[ControlSetConfig] = field(default_factory=default_control_sets)
    manual: ManualFilterConfig = field(default_factory=ManualFilterConfig)
    default: DefaultFilterConfig = field(default_factory=DefaultFilterConfig)
    automatic: AutomaticFilterConfig = field(default_factory=AutomaticFilterConfig)
    genes: GeneFilterConfig = field(default_factory=GeneFilterConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    selected_filter: str = "manual"
    drop_undetected_genes: bool = True

    def __post_init__(self):
        if self.selected_filter not in FILTER_NAMES:
            raise ValueError(
                f"selected_filter must be one of {FILTER_NAMES}, "
                f"got '{self.selected_filter}'"
            )

    @classmethod
    def from_yaml(cls, path: Path) -> "QCConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested section
        if isinstance(data, dict) and "umi_qc" in data:
            data = data["umi_qc"] or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration {path} must be a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QCConfig":
        """Build configuration from a plain dictionary."""
        control_sets = data.get("control_sets")
        if control_sets is None:
            control_sets = default_control_sets()
        else:
            control_sets = [ControlSetConfig(**entry) for entry in control_sets]

        return cls(
            loader=LoaderConfig(**data.get("loader", {})),
            control_sets=control_sets,
            manual=ManualFilterConfig(**data.get("manual", {})),
            default=DefaultFilterConfig(**data.get("default", {})),
            automatic=AutomaticFilterConfig(**data.get("automatic", {})),
            genes=GeneFilterConfig(**data.get("genes", {})),
            export=ExportConfig(**data.get("export", {})),
            selected_filter=data.get("selected_filter", "manual"),
            drop_undetected_genes=data.get("drop_undetected_genes", True),
        )

    @classmethod
    def default_config(cls) -> "QCConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def to_yaml(self, path: Path) -> Path:
        """Write configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump({"umi_qc": self.to_dict()}, f, sort_keys=False)
        return path
