"""Command-line interface for UMI-QC.

Example Usage
-------------
    umi-qc --help
    umi-qc run --counts molecules.txt --annotation annotation.txt --out qc/
    umi-qc init-config --out qc_config.yaml
"""

__version__ = "0.1.0"

from .main import cli, main

__all__ = [
    "__version__",
    "cli",
    "main",
]
