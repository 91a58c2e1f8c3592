"""
EnsembleComp Command Line Interface.

This module provides the CLI for comparing two conformational ensembles
and inspecting the input files. Built with Click, with rich for console
output and logging.

Usage:
    ensemblecomp compare open.xtc closed.xtc -s protein.pdb
    ensemblecomp compare a.xtc b.xtc -n1 a.ndx -n2 b.ndx --group1 Protein
    ensemblecomp inspect open.xtc protein.pdb
    ensemblecomp groups index.ndx
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .. import __version__
from ..core.errors import EnsembleCompError
from ..core.selection import read_index_groups
from ..core.structure import (
    TOPOLOGY_FORMATS,
    read_topology,
    read_trajectory,
    trajectory_format,
)
from ..features.extraction import EmptyResiduePolicy, MembershipPolicy
from ..pipeline.runner import EtaConfig, compare_files

# Initialize rich console for pretty output
console = Console()


def print_banner():
    """Print the EnsembleComp banner."""
    banner = f"""
    ╔═══════════════════════════════════════════════════════════════╗
    ║                      EnsembleComp v{__version__}                      ║
    ║     Residue-level Comparison of Conformational Ensembles      ║
    ╚═══════════════════════════════════════════════════════════════╝
    """
    console.print(banner, style="bold blue")


def setup_logging(verbose: bool, quiet: bool) -> None:
    """Route library logging through rich."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="EnsembleComp")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool):
    """
    EnsembleComp: find the residues that differ between two ensembles.

    For every residue a support vector classifier is trained to tell the
    frames of one trajectory from those of the other. The fewer support
    vectors it needs, the more different the residue is between the two
    ensembles (eta close to 1).

    Run 'ensemblecomp COMMAND --help' for command-specific help.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    setup_logging(verbose, quiet)
    if not quiet:
        print_banner()


@cli.command("compare")
@click.argument("traj1", type=click.Path(exists=True))
@click.argument("traj2", type=click.Path(exists=True))
@click.option(
    "--index1", "-n1",
    type=click.Path(exists=True),
    help="Index file selecting the atoms of TRAJ1"
)
@click.option(
    "--index2", "-n2",
    type=click.Path(exists=True),
    help="Index file selecting the atoms of TRAJ2 (default: same as --index1)"
)
@click.option("--group1", default=None, help="Group to use from --index1 (default: first)")
@click.option("--group2", default=None, help="Group to use from --index2 (default: first)")
@click.option(
    "--residues", "-s",
    type=click.Path(exists=True),
    help="Structure file (PDB/GRO/mmCIF) defining residues"
)
@click.option(
    "--atom-output", "-o",
    type=click.Path(),
    default="eta_atom.dat",
    help="Per-atom eta table"
)
@click.option(
    "--residue-output", "-r",
    type=click.Path(),
    default="eta_res.dat",
    help="Per-residue eta table (written when --residues is given)"
)
@click.option(
    "--json", "json_output",
    type=click.Path(),
    default=None,
    help="Also write the complete result as JSON"
)
@click.option("--gamma", type=float, default=0.4, help="RBF kernel gamma (default: 0.4)")
@click.option("--cost", "-c", type=float, default=100.0, help="SVM cost C (default: 100)")
@click.option(
    "--nthreads", "-t",
    type=int,
    default=None,
    help="Parallel training workers (default: all cores)"
)
@click.option(
    "--restrict-to-selection",
    is_flag=True,
    help="Drop residue atoms outside the index group instead of failing"
)
@click.option(
    "--reject-empty-residues",
    is_flag=True,
    help="Fail on residues without selected atoms instead of skipping them"
)
@click.option("--no-atoms", is_flag=True, help="Skip the per-atom comparison")
@click.option(
    "--top",
    type=click.IntRange(min=0),
    default=10,
    help="Number of most separable residues to show (0 = none)"
)
@click.pass_context
def compare(
    ctx,
    traj1: str,
    traj2: str,
    index1: Optional[str],
    index2: Optional[str],
    group1: Optional[str],
    group2: Optional[str],
    residues: Optional[str],
    atom_output: str,
    residue_output: str,
    json_output: Optional[str],
    gamma: float,
    cost: float,
    nthreads: Optional[int],
    restrict_to_selection: bool,
    reject_empty_residues: bool,
    no_atoms: bool,
    top: int,
):
    """
    Compare the conformational ensembles of two trajectories.

    TRAJ1 and TRAJ2 must contain the same number of frames. Supported
    trajectory formats: XTC, TRR, DCD, multi-model PDB, GRO, mmCIF.

    \b
    Examples:
        ensemblecomp compare open.xtc closed.xtc -s protein.pdb
        ensemblecomp compare a.xtc b.xtc -n1 a.ndx -n2 b.ndx -s a.pdb -t 8
        ensemblecomp compare a.dcd b.dcd --gamma 0.2 -c 10 --no-atoms -s a.pdb
    """
    try:
        config = EtaConfig(
            gamma=gamma,
            cost=cost,
            workers=nthreads,
            compute_atoms=not no_atoms,
            compute_residues=residues is not None,
            membership_policy=(
                MembershipPolicy.RESTRICT if restrict_to_selection else MembershipPolicy.STRICT
            ),
            empty_residue_policy=(
                EmptyResiduePolicy.REJECT if reject_empty_residues else EmptyResiduePolicy.SKIP
            ),
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    if no_atoms and residues is None:
        raise click.UsageError("--no-atoms requires --residues, nothing to compute otherwise")

    # One index file serves both trajectories unless a second one is given
    if index2 is None and index1 is not None:
        index2 = index1
        group2 = group2 or group1

    quiet = ctx.obj.get("quiet")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            disable=quiet,
        ) as progress:
            task = progress.add_task("Loading ensembles...", total=None)

            def on_stage(stage, message):
                progress.update(task, description=message)

            result = compare_files(
                traj1,
                traj2,
                topology=residues,
                index_a=index1,
                index_b=index2,
                group_a=group1,
                group_b=group2,
                config=config,
                atom_output=None if no_atoms else atom_output,
                residue_output=residue_output if residues else None,
                json_output=json_output,
                progress_callback=on_stage,
            )
    except EnsembleCompError as e:
        console.print(f"[red]✗ Error:[/red] {e}")
        sys.exit(1)
    except OSError as e:
        console.print(f"[red]✗ Could not write results:[/red] {e}")
        sys.exit(1)

    if quiet:
        return

    if result.atoms:
        console.print(f"[green]✓[/green] {len(result.atoms)} atom eta values saved to: {atom_output}")
    if result.residues:
        console.print(
            f"[green]✓[/green] {len(result.residues)} residue eta values saved to: {residue_output}"
        )
    if result.skipped_residues:
        console.print(
            f"[yellow]Warning:[/yellow] {len(result.skipped_residues)} residue(s) "
            f"had no selected atoms and were skipped"
        )
    if json_output:
        console.print(f"[green]✓[/green] Result saved to: {json_output}")

    if top and result.residues:
        table = Table(
            title=f"Most Separable Residues (gamma={result.gamma}, C={result.cost})",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Rank", justify="right")
        table.add_column("Residue", style="bold")
        table.add_column("Atoms", justify="right")
        table.add_column("Support Vectors", justify="right")
        table.add_column("Eta", justify="right")

        for rank, res in enumerate(result.most_separable(top), start=1):
            table.add_row(
                str(rank),
                res.label,
                str(res.n_atoms),
                f"{res.n_support}/{2 * result.n_frames}",
                f"{res.eta:.3f}",
            )

        console.print(table)


@cli.command("inspect")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True))
def inspect_cmd(files: tuple):
    """
    Show frame, atom and residue counts of trajectory and structure files.

    Residues are reported for structure files (PDB, GRO, mmCIF) only.
    """
    try:
        for f in files:
            trajectory_format(f)
    except EnsembleCompError as e:
        console.print(f"[red]✗ Error:[/red] {e}")
        sys.exit(1)

    table = Table(title="Input Files", show_header=True, header_style="bold cyan")
    table.add_column("File", style="bold")
    table.add_column("Frames", justify="right")
    table.add_column("Atoms", justify="right")
    table.add_column("Residues", justify="right")

    for f in files:
        path = Path(f)
        try:
            ensemble = read_trajectory(path)
            n_residues = "-"
            if path.suffix.lower() in TOPOLOGY_FORMATS:
                n_residues = str(read_topology(path).n_residues)
        except EnsembleCompError as e:
            console.print(f"[red]✗ Error reading {path}:[/red] {e}")
            sys.exit(1)

        table.add_row(path.name, str(ensemble.n_frames), str(ensemble.n_atoms), n_residues)

    console.print(table)


@cli.command("groups")
@click.argument("index_file", type=click.Path(exists=True))
def groups_cmd(index_file: str):
    """
    List the groups of a GROMACS index (.ndx) file.
    """
    try:
        groups = read_index_groups(index_file)
    except EnsembleCompError as e:
        console.print(f"[red]✗ Error:[/red] {e}")
        sys.exit(1)

    if not groups:
        console.print("[yellow]No groups found.[/yellow]")
        return

    table = Table(title=f"Index Groups in {Path(index_file).name}", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Group", style="bold")
    table.add_column("Atoms", justify="right")
    table.add_column("Range")

    for i, (name, selection) in enumerate(groups.items()):
        if len(selection):
            span = f"{selection.indices.min() + 1}-{selection.indices.max() + 1}"
        else:
            span = "-"
        table.add_row(str(i), name, str(len(selection)), span)

    console.print(table)


def main():
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
