from __future__ import annotations

import enum
import logging
import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import anyio
import anyio.to_thread
import mainpy

from copygen.config import find_config
from copygen.emit import render_unit, unit_name
from copygen.metadata import load_models
from copygen.plan import plan_target

if TYPE_CHECKING:
    from collections.abc import Sequence

    from _typeshed import StrPath  # noqa: PLC2701

    from copygen.config import Config
    from copygen.metadata import ModelSet
    from copygen.model import TypeDescriptor

__all__ = (
    "Project",
    "Unit",
    "UnitStatus",
    "build_unit",
    "build_units",
    "check_units",
    "load_project",
    "write_units",
)


_logger: Final = logging.getLogger(__name__)


class UnitStatus(enum.StrEnum):
    GENERATED = "generated"
    UNCHANGED = "unchanged"
    STALE = "stale"
    MISSING = "missing"


@dataclass(frozen=True, slots=True)
class Unit:
    """A generated source file."""

    name: str
    target: str
    text: str


@dataclass(frozen=True, slots=True)
class Project:
    config: Config
    models: ModelSet
    model_files: tuple[anyio.Path, ...] = ()

    @property
    def output_dir(self) -> anyio.Path:
        return self.config.output_dir


async def _find_models(config: Config, /) -> list[anyio.Path]:
    output_dir = await config.output_dir.resolve()
    found: dict[str, anyio.Path] = {}
    for pattern in config.models:
        async for path in config.root.glob(pattern):
            if output_dir in path.parents or not await path.is_file():
                continue
            found.setdefault(str(path), path)
    return [found[key] for key in sorted(found)]


async def load_project(project_dir: StrPath, /) -> Project:
    """Read the configuration and all model files of a project.

    Raises:
        ConfigError: if the configuration is invalid.
        ModelError: if a model file is malformed.
    """
    config = await find_config(project_dir)
    paths = await _find_models(config)
    if not paths:
        _logger.warning(
            "no model files matching %s in %s",
            ", ".join(config.models),
            config.root,
        )
    models = await load_models(paths, value_types=config.value_types)
    return Project(config, models, tuple(paths))


def build_unit(project: Project, target: TypeDescriptor, /) -> Unit | None:
    """Plan and render the unit of a single target, or `None` if empty."""
    plan = plan_target(
        target,
        project.models.requests(target.qualified_name),
        project.models.registry,
        project.config.modes,
    )
    if plan.is_empty:
        return None
    return Unit(unit_name(plan), target.qualified_name, render_unit(plan))


async def build_units(project: Project, /) -> list[Unit]:
    """Build the units of all targets, in worker threads.

    Raises:
        ValueError: if two targets would generate the same file.
    """
    t0 = time.perf_counter()
    results: dict[str, Unit] = {}

    async def _build(target: TypeDescriptor) -> None:
        unit = await anyio.to_thread.run_sync(build_unit, project, target)
        if unit is not None:
            results[target.qualified_name] = unit

    async with anyio.create_task_group() as tg:
        for target in project.models.targets():
            tg.start_soon(_build, target)

    units = sorted(results.values(), key=lambda u: (u.name, u.target))
    names = [unit.name for unit in units]
    if duplicates := sorted({name for name in names if names.count(name) > 1}):
        msg = f"more than one target generates {', '.join(duplicates)}"
        raise ValueError(msg)

    elapsed = time.perf_counter() - t0
    _logger.info("build_units: %d unit(s) in %.2fs", len(units), elapsed)
    return units


async def write_units(
    units: Sequence[Unit],
    out_dir: StrPath,
    /,
) -> dict[str, UnitStatus]:
    """Write the units to *out_dir*, skipping files that are up to date."""
    out_path = anyio.Path(out_dir)
    await out_path.mkdir(parents=True, exist_ok=True)

    statuses: dict[str, UnitStatus] = {}
    for unit in units:
        path = out_path / unit.name
        if await path.is_file() and await path.read_text(encoding="utf-8") == unit.text:
            statuses[unit.name] = UnitStatus.UNCHANGED
            continue
        await path.write_text(unit.text, encoding="utf-8", newline="\n")
        _logger.info("wrote %s", path)
        statuses[unit.name] = UnitStatus.GENERATED
    return statuses


async def check_units(
    units: Sequence[Unit],
    out_dir: StrPath,
    /,
) -> dict[str, UnitStatus]:
    """The units whose file in *out_dir* is missing or out of date."""
    out_path = anyio.Path(out_dir)
    problems: dict[str, UnitStatus] = {}
    for unit in units:
        path = out_path / unit.name
        if not await path.is_file():
            problems[unit.name] = UnitStatus.MISSING
        elif await path.read_text(encoding="utf-8") != unit.text:
            problems[unit.name] = UnitStatus.STALE
    return problems


@mainpy.main
async def main() -> None:
    project_dir = sys.argv[1] if len(sys.argv) > 1 else "."

    project = await load_project(project_dir)
    for unit in await build_units(project):
        print(f"// ---- {unit.name} ----")  # noqa: T201
        print(unit.text)  # noqa: T201
