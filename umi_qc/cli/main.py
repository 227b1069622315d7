"""Command-line interface for UMI-QC.

Provides CLI commands for running an expression QC session.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import click


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("umi_qc")


def _load_config(config: Optional[str]):
    import yaml

    from umi_qc.core.qc import QCConfig

    if not config:
        return QCConfig()
    try:
        return QCConfig.from_yaml(Path(config))
    except (ValueError, TypeError, yaml.YAMLError) as e:
        raise click.ClickException(f"Invalid configuration {config}: {e}")


@click.group()
@click.version_option(version="0.1.0", prog_name="umi-qc")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """UMI-QC: expression quality control for UMI count matrices.

    Computes per-cell QC metrics, compares manual, MAD-based and
    PCA-based cell filters, filters cells then genes, and writes the
    filtered data as AnnData.

    Examples:

        # Full QC session with default thresholds
        umi-qc run --counts molecules.txt --annotation annotation.txt --out qc/

        # Metrics only
        umi-qc metrics --counts molecules.txt --annotation annotation.txt --out qc/

        # Write an editable config
        umi-qc init-config --out qc_config.yaml
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_logging(verbose, debug)


@cli.command()
@click.option("--counts", "-c", "counts_path", required=True, type=click.Path(exists=True),
              help="Tab-delimited genes x cells UMI count matrix")
@click.option("--annotation", "-a", "annotation_path", required=True,
              type=click.Path(exists=True), help="Tab-delimited cell annotation table")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", type=click.Path(exists=True), help="QC configuration file (YAML)")
@click.option("--filter", "selected_filter",
              type=click.Choice(["manual", "default", "automatic"]),
              help="Cell filter applied to the data (overrides config)")
@click.option("--plots/--no-plots", default=None, help="Write QC figures")
@click.pass_context
def run(
    ctx: click.Context,
    counts_path: str,
    annotation_path: str,
    output_path: str,
    config: Optional[str],
    selected_filter: Optional[str],
    plots: Optional[bool],
) -> None:
    """Run a full QC session.

    Steps:
      1: Load and validate inputs
      2: Compute QC metrics and evaluate cell filters
      3: Filter cells, then genes
      4: Write AnnData, QC tables and figures
    """
    from umi_qc.core.qc import QCEngine, export_session
    from umi_qc.io import SessionLogger, log_json, log_yaml

    cfg = _load_config(config)
    if selected_filter:
        cfg.selected_filter = selected_filter
    if plots is not None:
        cfg.export.write_plots = plots

    out_dir = Path(output_path)
    level = "DEBUG" if ctx.obj["debug"] else ("INFO" if ctx.obj["verbose"] else "WARNING")
    session = SessionLogger(out_dir / "logs", log_level=level)
    logger = session.setup()
    steps_log = out_dir / "logs" / "steps.jsonl"

    def finish_step(step_id: str, start: float) -> None:
        duration = time.time() - start
        session.log_step_complete(step_id, duration)
        log_json(
            steps_log,
            {"step": step_id, "status": "completed", "duration": round(duration, 3)},
        )

    step = "load"
    try:
        start = time.time()
        session.log_step_start(step, f"Loading {counts_path}")
        engine = QCEngine(cfg, logger)
        dataset = engine.load(Path(counts_path), Path(annotation_path))
        finish_step(step, start)

        step = "qc"
        start = time.time()
        session.log_step_start(step, "Evaluating cell filters")
        result = engine.run(dataset)
        finish_step(step, start)
        log_yaml(None, result.to_dict(), logger=logger)

        step = "export"
        start = time.time()
        session.log_step_start(step, f"Writing outputs to {out_dir}")
        paths = export_session(result, out_dir, cfg)
        if cfg.export.write_plots:
            from umi_qc.viz import plot_session

            plot_session(result, out_dir / "figures", cfg)
        finish_step(step, start)
    except (FileNotFoundError, ValueError) as e:
        session.log_step_error(step, str(e))
        log_json(steps_log, {"step": step, "status": "failed", "error": str(e)})
        raise click.ClickException(str(e))
    finally:
        session.close()

    for name, count in result.to_dict()["cells_kept"].items():
        click.echo(f"{name:>10}: {count}/{result.dataset.n_cells} cells kept")
    filtered = result.filtered.dataset
    click.echo(f"Filtered data: {filtered.n_cells} cells x {filtered.n_genes} genes")
    click.echo(f"Output saved to: {paths['h5ad']}")


@cli.command()
@click.option("--counts", "-c", "counts_path", required=True, type=click.Path(exists=True),
              help="Tab-delimited genes x cells UMI count matrix")
@click.option("--annotation", "-a", "annotation_path", required=True,
              type=click.Path(exists=True), help="Tab-delimited cell annotation table")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", type=click.Path(exists=True), help="QC configuration file (YAML)")
@click.pass_context
def metrics(
    ctx: click.Context,
    counts_path: str,
    annotation_path: str,
    output_path: str,
    config: Optional[str],
) -> None:
    """Compute per-cell and per-gene QC metrics only."""
    from umi_qc.core.qc import (
        DataLoader,
        cell_qc_table,
        compute_cell_metrics,
        compute_gene_metrics,
    )
    from umi_qc.io import write_dataframe

    logger = ctx.obj["logger"]
    cfg = _load_config(config)
    try:
        dataset = DataLoader(cfg.loader).load_dataset(
            Path(counts_path), Path(annotation_path), cfg.control_sets
        )
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))

    logger.info(f"Loaded {dataset.n_cells} cells, {dataset.n_genes} genes")
    out_dir = Path(output_path)
    cell_path = write_dataframe(
        cell_qc_table(dataset, compute_cell_metrics(dataset)),
        out_dir / "cell_metrics.tsv",
        index=True,
    )
    gene_path = write_dataframe(
        compute_gene_metrics(dataset), out_dir / "gene_metrics.tsv", index=True
    )
    click.echo(f"Cell metrics saved to: {cell_path}")
    click.echo(f"Gene metrics saved to: {gene_path}")


@cli.command("init-config")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Path of the YAML file to write")
def init_config(output_path: str) -> None:
    """Write the default QC configuration as YAML."""
    from umi_qc.core.qc import QCConfig

    path = QCConfig().to_yaml(Path(output_path))
    click.echo(f"Default configuration written to: {path}")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
