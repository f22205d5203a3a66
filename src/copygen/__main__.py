"""copygen CLI -- generate copy constructors and copy methods for C# types."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

import anyio
import typer

from copygen import generate
from copygen.model import Mode
from copygen.plan import member_pairs

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from copygen.model import MemberDescriptor, TypeDescriptor


app = typer.Typer(
    name="copygen",
    help="Generate copy constructors and copy/update methods for C# partial types.",
    no_args_is_help=True,
)

_ProjectDir = Annotated[
    str,
    typer.Argument(help="Project directory, searched upwards for the configuration."),
]


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import version  # noqa: PLC0415

        modes = ", ".join(Mode)
        typer.echo(f"copygen {version('copygen')} (modes: {modes})")
        raise typer.Exit


@app.callback()
def main(
    *,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Also log the config file, skipped members and every planned method.",
        ),
    ] = False,
    version: Annotated[  # noqa: ARG001
        bool | None,
        typer.Option(
            "--version",
            help="Show the version and the supported copy modes, then exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Plan copy methods from TOML type models and emit them as C# partial types.

    Every command reads the configuration found above PROJECT_DIR and the model
    files it names.
    """
    level = logging.DEBUG if verbose else logging.INFO
    if not logging.root.handlers:
        logging.basicConfig(
            level=level,
            format="%(levelname)s %(name)s: %(message)s",
        )
    else:
        logging.root.setLevel(level)


def _run[*Ts, R](func: Callable[[*Ts], Awaitable[R]], *args: *Ts) -> R:
    try:
        return anyio.run(func, *args)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command(name="generate")
def generate_(
    project_dir: _ProjectDir = ".",
    *,
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Output directory (overrides the config)."),
    ] = None,
) -> None:
    """Generate the sources of all targets, rewriting only changed files."""
    statuses = _run(_generate_async, project_dir, output)
    for name, status in statuses.items():
        typer.echo(f"{status}: {name}")
    typer.echo(f"{len(statuses)} unit(s)")


async def _generate_async(
    project_dir: str,
    output: str | None,
) -> dict[str, generate.UnitStatus]:
    project = await generate.load_project(project_dir)
    units = await generate.build_units(project)
    out_dir = output if output is not None else project.output_dir
    return await generate.write_units(units, out_dir)


@app.command()
def check(project_dir: _ProjectDir = ".") -> None:
    """Check that the generated sources are up to date."""
    problems = _run(_check_async, project_dir)
    for name, status in problems.items():
        typer.echo(f"{name} is {status}", err=True)
    if problems:
        raise typer.Exit(code=1)
    typer.echo("all generated sources are up to date")


async def _check_async(project_dir: str) -> dict[str, generate.UnitStatus]:
    project = await generate.load_project(project_dir)
    units = await generate.build_units(project)
    return await generate.check_units(units, project.output_dir)


@app.command()
def show(
    target: Annotated[str, typer.Argument(help="(Qualified) name of the target type.")],
    project_dir: _ProjectDir = ".",
) -> None:
    """Print the generated source of a single target."""
    typer.echo(_run(_show_async, target, project_dir), nl=False)


async def _show_async(target: str, project_dir: str) -> str:
    project = await generate.load_project(project_dir)
    if (found := project.models.lookup(target)) is None:
        msg = f"unknown or ambiguous type {target!r}"
        raise ValueError(msg)
    if (unit := generate.build_unit(project, found)) is None:
        msg = f"no copy methods are requested on {found.qualified_name}"
        raise ValueError(msg)
    return unit.text


@app.command()
def members(
    target: Annotated[str, typer.Argument(help="The type that is written to.")],
    source: Annotated[str, typer.Argument(help="The type that is read from.")],
    project_dir: _ProjectDir = ".",
) -> None:
    """List the members CopyFrom(SOURCE) on TARGET assigns, and what they read."""
    for written, read in _run(_members_async, target, source, project_dir):
        line = f"{written.type} {written.name}"
        if read.name != written.name:
            line += f" <- {read.name}"
        typer.echo(line)


async def _members_async(
    target: str,
    source: str,
    project_dir: str,
) -> list[tuple[MemberDescriptor, MemberDescriptor]]:
    project = await generate.load_project(project_dir)
    found: list[TypeDescriptor] = []
    for name in (target, source):
        if (type_ := project.models.lookup(name)) is None:
            msg = f"unknown or ambiguous type {name!r}"
            raise ValueError(msg)
        found.append(type_)

    config = project.config.modes[Mode.COPY]
    return member_pairs(found[0], found[1], project.models.registry, config)
