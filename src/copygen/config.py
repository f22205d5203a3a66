from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

import anyio

from copygen.model import Mode
from copygen.modes import DEFAULT_MODES

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    from _typeshed import StrPath  # noqa: PLC2701

    from copygen.modes import ModeConfig

__all__ = "Config", "ConfigError", "find_config", "parse_config"


_logger: Final = logging.getLogger(__name__)

DEFAULT_MODELS: Final = ("**/*.copygen.toml",)
DEFAULT_OUTPUT: Final = "Generated"

_KEYS: Final = frozenset({"models", "output", "value_types", "modes"})

type _AsyncParser = Callable[[anyio.Path], Awaitable[dict[str, Any] | None]]


class ConfigError(ValueError):
    """The project configuration is invalid."""


@dataclass(frozen=True, slots=True)
class Config:
    """The settings of a project, relative to its `root` directory."""

    root: anyio.Path
    models: tuple[str, ...] = DEFAULT_MODELS
    output: str = DEFAULT_OUTPUT
    value_types: frozenset[str] = frozenset()
    modes: Mapping[Mode, ModeConfig] = field(default_factory=lambda: DEFAULT_MODES)
    # the file the settings were read from, if any
    source: anyio.Path | None = None

    @property
    def output_dir(self) -> anyio.Path:
        return self.root / self.output


async def _parse_toml(path: anyio.Path, /) -> dict[str, Any] | None:
    """Parse a ``copygen.toml`` file."""
    return tomllib.loads(await path.read_text())


async def _parse_pyproject(path: anyio.Path, /) -> dict[str, Any] | None:
    """Parse the ``[tool.copygen]`` table of a ``pyproject.toml``."""
    tool = tomllib.loads(await path.read_text()).get("tool")
    if not isinstance(tool, dict):
        return None
    if not isinstance(copygen := tool.get("copygen"), dict):
        return None
    return dict(copygen)


# checked in order; the first file that exists and yields a table wins
_CONFIG_FILES: Final[Sequence[tuple[str, _AsyncParser]]] = (
    ("copygen.toml", _parse_toml),
    (".copygen.toml", _parse_toml),
    ("pyproject.toml", _parse_pyproject),
)


def _string_list(value: object, key: str, /) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        msg = f"{key!r} must be a list of strings, got {value!r}"
        raise ConfigError(msg)
    return tuple(value)


def _parse_modes(value: object, /) -> Mapping[Mode, ModeConfig]:
    if not isinstance(value, dict):
        msg = f"'modes' must be a table, got {value!r}"
        raise ConfigError(msg)

    modes = dict(DEFAULT_MODES)
    for name, options in value.items():
        try:
            mode = Mode(name)
        except ValueError:
            choices = ", ".join(map(repr, Mode))
            msg = f"unknown mode {name!r}, expected one of {choices}"
            raise ConfigError(msg) from None
        if not isinstance(options, dict):
            msg = f"'modes.{name}' must be a table, got {options!r}"
            raise ConfigError(msg)
        try:
            modes[mode] = modes[mode].with_options(options)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    methods = [config.method for config in modes.values()]
    if len(set(methods)) != len(methods):
        msg = f"generated method names must be distinct, got {', '.join(methods)}"
        raise ConfigError(msg)
    return modes


def parse_config(
    table: Mapping[str, Any],
    root: StrPath,
    /,
    *,
    source: StrPath | None = None,
) -> Config:
    """Validate a configuration table.

    Raises:
        ConfigError: for unknown keys or invalid values.
    """
    if unknown := sorted(set(table) - _KEYS):
        msg = f"unknown configuration key(s) {', '.join(map(repr, unknown))}"
        raise ConfigError(msg)

    output = table.get("output", DEFAULT_OUTPUT)
    if not isinstance(output, str) or not output:
        msg = f"'output' must be a non-empty string, got {output!r}"
        raise ConfigError(msg)

    return Config(
        root=anyio.Path(root),
        models=_string_list(table.get("models", list(DEFAULT_MODELS)), "models"),
        output=output,
        value_types=frozenset(
            _string_list(table.get("value_types", []), "value_types"),
        ),
        modes=_parse_modes(table.get("modes", {})),
        source=anyio.Path(source) if source is not None else None,
    )


async def find_config(project_dir: StrPath, /) -> Config:
    """Discover the configuration by walking up from *project_dir*.

    Paths in a discovered configuration are relative to the directory of the
    file they were read from. Without one, the defaults apply relative to
    *project_dir*.

    Raises:
        ConfigError: if the discovered configuration is invalid.
    """
    start = await anyio.Path(project_dir).resolve()
    current = start
    while True:
        for filename, parser in _CONFIG_FILES:
            candidate = current / filename
            if not await candidate.is_file():
                continue
            try:
                table = await parser(candidate)
            except tomllib.TOMLDecodeError as exc:
                msg = f"{candidate}: {exc}"
                raise ConfigError(msg) from exc
            if table is None:
                continue

            _logger.debug("using configuration from %s", candidate)
            try:
                return parse_config(table, current, source=candidate)
            except ConfigError as exc:
                msg = f"{candidate}: {exc}"
                raise ConfigError(msg) from exc

        parent = current.parent
        if parent == current:
            break
        current = parent

    _logger.debug("no configuration found, using the defaults")
    return Config(start)
