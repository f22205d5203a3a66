"""Decide, per target type, which copy methods to generate and what they do.

The result (`TargetPlan`) is a plain description of the generated code;
`copygen.emit` only renders it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final, override

from copygen.formatters import Shape
from copygen.members import collect_members, pair_members
from copygen.model import Mode, ReturnShape
from copygen.modes import DEFAULT_MODES

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from copygen.model import MemberDescriptor, TypeDescriptor, TypeRef, TypeRegistry
    from copygen.modes import ModeConfig

__all__ = (
    "GenerationRequest",
    "MemberStep",
    "MethodPlan",
    "NullHandling",
    "PassthroughUnit",
    "TargetPlan",
    "TransformHook",
    "member_pairs",
    "plan_target",
)


_logger: Final = logging.getLogger(__name__)

_PASSTHROUGH_PREFIX: Final = "PassthroughTransform_"
_MISSING_ARGUMENT: Final = "default!"


class NullHandling(StrEnum):
    VALUE = "value"  # value types can't be null
    NOT_NULL = "not-null"  # never assign null; not counted as a change
    NULLABLE = "nullable"

    @classmethod
    def of(cls, type_: TypeRef, /) -> NullHandling:
        if type_.is_value_type:
            return cls.VALUE
        if type_.is_nullable:
            return cls.NULLABLE
        return cls.NOT_NULL


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Generate `mode` methods on `target`, one per source type."""

    target: TypeDescriptor
    sources: tuple[TypeDescriptor, ...]
    mode: Mode

    @override
    def __str__(self) -> str:
        sources = ", ".join(s.qualified_name for s in self.sources)
        return f"{self.mode}({self.target.qualified_name} <- {sources})"


@dataclass(frozen=True, slots=True)
class TransformHook:
    """A declaration-only `static partial void` hook run on a value before it
    is assigned."""

    name: str
    member: str
    type: str


@dataclass(frozen=True, slots=True)
class PassthroughUnit:
    """Reads, transforms and returns one primary constructor argument."""

    member: str
    type: str
    source: str
    source_member: str
    transform: str
    # a null check is only emitted for reference type sources
    null_guard: bool

    @property
    def name(self) -> str:
        return f"{_PASSTHROUGH_PREFIX}{self.member}"


@dataclass(frozen=True, slots=True)
class MemberStep:
    written: str
    read: str
    type: str
    null_handling: NullHandling
    transform: str


@dataclass(frozen=True, slots=True)
class MethodPlan:
    mode: Mode
    name: str
    source: str
    param: str
    declaration: str
    comment: str
    returns: ReturnShape
    swapped: bool
    by_ref: bool
    null_guard: bool
    self_guard: bool
    before_hook: str | None
    after_hook: str | None
    steps: tuple[MemberStep, ...]

    @property
    def receiver(self) -> str:
        """The expression that is written to."""
        return self.param if self.swapped else "this"

    @property
    def provider(self) -> str:
        """The expression that is read from."""
        return "this" if self.swapped else self.param


@dataclass(frozen=True, slots=True)
class TargetPlan:
    target: TypeDescriptor
    transforms: tuple[TransformHook, ...]
    passthroughs: tuple[PassthroughUnit, ...]
    methods: tuple[MethodPlan, ...]

    @property
    def is_empty(self) -> bool:
        return not self.methods


def _source_name(target: TypeDescriptor, source: TypeDescriptor, /) -> str:
    if source.qualified_name == target.qualified_name:
        return target.name
    return source.qualified_name


def _ordered_sources(sources: Iterable[TypeDescriptor], /) -> list[TypeDescriptor]:
    unique = {s.qualified_name: s for s in sources}
    return sorted(unique.values(), key=lambda s: s.sort_key())


class _Planner:
    """Plans the methods of a single target type.

    Transform hooks and passthroughs are shared by all methods of the target
    and are registered on first use.
    """

    _target: TypeDescriptor
    _registry: TypeRegistry
    _transforms: dict[tuple[str, str], TransformHook]
    _passthroughs: dict[tuple[str, str], PassthroughUnit]

    def __init__(self, target: TypeDescriptor, registry: TypeRegistry) -> None:
        self._target = target
        self._registry = registry
        self._transforms = {}
        self._passthroughs = {}

    def _collect(
        self,
        type_: TypeDescriptor,
        /,
        *,
        non_public: bool,
        read_only: bool,
        init_only: bool,
    ) -> tuple[MemberDescriptor, ...]:
        return collect_members(
            type_,
            self._registry,
            include_non_public=non_public,
            include_read_only=read_only,
            include_init_only=init_only,
        )

    def member_pairs(
        self,
        source: TypeDescriptor,
        config: ModeConfig,
        /,
    ) -> list[tuple[MemberDescriptor, MemberDescriptor]]:
        """`(written, read)` member pairs, sorted by name."""
        target = self._target
        is_self = source.qualified_name == target.qualified_name
        if config.swapped:
            read = self._collect(
                target,
                non_public=True,
                read_only=True,
                init_only=True,
            )
            if is_self:
                written = self._collect(
                    target,
                    non_public=True,
                    read_only=False,
                    init_only=False,
                )
            else:
                # only what is writable from outside the foreign type
                written = self._collect(
                    source,
                    non_public=False,
                    read_only=False,
                    init_only=False,
                )
        else:
            written = self._collect(
                target,
                non_public=True,
                read_only=False,
                init_only=config.is_constructor,
            )
            if is_self:
                read = written
            else:
                read = self._collect(
                    source,
                    non_public=False,
                    read_only=True,
                    init_only=True,
                )
        return pair_members(written, read)

    def _transform(self, config: ModeConfig, member: MemberDescriptor, /) -> str:
        name = config.transform_hook(member.name)
        # overloads if one name is matched with two different types
        key = name, member.type.identity
        if key not in self._transforms:
            self._transforms[key] = TransformHook(name, member.name, str(member.type))
        return name

    def _passthrough(
        self,
        source: TypeDescriptor,
        written: MemberDescriptor,
        read: MemberDescriptor,
        transform: str,
        /,
    ) -> PassthroughUnit:
        key = written.name, source.qualified_name
        if key not in self._passthroughs:
            self._passthroughs[key] = PassthroughUnit(
                member=written.name,
                type=str(written.type),
                source=_source_name(self._target, source),
                source_member=read.name,
                transform=transform,
                null_guard=not source.is_value_type,
            )
        return self._passthroughs[key]

    def _initializer(
        self,
        source: TypeDescriptor,
        passthroughs: Mapping[str, PassthroughUnit],
        param: str,
        /,
    ) -> str | None:
        target = self._target
        if source.qualified_name == target.qualified_name:
            # a copy constructor must not re-run the default initialization
            return None
        if not target.has_primary_constructor:
            return "this()" if target.has_default_constructor else None

        arguments: list[str] = []
        for parameter in target.parameters:
            if (unit := passthroughs.get(parameter.casefold())) is not None:
                arguments.append(f"{unit.name}({param})")
            else:
                _logger.debug(
                    "%s: no value for parameter %s from %s",
                    target.qualified_name,
                    parameter,
                    source.qualified_name,
                )
                arguments.append(_MISSING_ARGUMENT)
        return f"this({', '.join(arguments)})"

    def plan_method(self, source: TypeDescriptor, config: ModeConfig, /) -> MethodPlan:
        target = self._target
        is_self = source.qualified_name == target.qualified_name
        use_passthroughs = (
            config.is_constructor and target.has_primary_constructor and not is_self
        )
        parameters = frozenset(p.casefold() for p in target.parameters)

        steps: list[MemberStep] = []
        passthroughs: dict[str, PassthroughUnit] = {}
        for written, read in self.member_pairs(source, config):
            transform = self._transform(config, written)
            if use_passthroughs and written.name.casefold() in parameters:
                # supplied through the primary constructor call only
                unit = self._passthrough(source, written, read, transform)
                passthroughs[written.name.casefold()] = unit
                continue
            steps.append(
                MemberStep(
                    written=written.name,
                    read=read.name,
                    type=str(written.type),
                    null_handling=NullHandling.of(written.type),
                    transform=transform,
                ),
            )

        source_name = _source_name(target, source)
        shape = Shape(
            mode=config.mode,
            method=config.method,
            returns=config.returns,
            target_kind=target.kind,
            by_ref=config.swapped and source.is_value_type,
            initializer=(
                self._initializer(source, passthroughs, config.param)
                if config.is_constructor
                else None
            ),
        )
        both_references = not source.is_value_type and not target.is_value_type
        return MethodPlan(
            mode=config.mode,
            name=config.method,
            source=source_name,
            param=config.param,
            declaration=config.declaration(
                target.name,
                source_name,
                config.param,
                shape,
            ),
            comment=config.comment(target.name, source_name, shape),
            returns=config.returns,
            swapped=config.swapped,
            by_ref=shape.by_ref,
            null_guard=not source.is_value_type,
            self_guard=both_references and not config.is_constructor,
            before_hook=config.before_hook,
            after_hook=config.after_hook,
            steps=tuple(steps),
        )

    def finish(self, methods: Sequence[MethodPlan], /) -> TargetPlan:
        transforms = sorted(
            self._transforms.values(),
            key=lambda t: (t.name.casefold(), t.name, t.type),
        )
        passthroughs = sorted(
            self._passthroughs.values(),
            key=lambda p: (p.member.casefold(), p.member, p.source),
        )
        return TargetPlan(
            self._target,
            tuple(transforms),
            tuple(passthroughs),
            tuple(methods),
        )


def plan_target(
    target: TypeDescriptor,
    requests: Iterable[GenerationRequest],
    registry: TypeRegistry,
    /,
    modes: Mapping[Mode, ModeConfig] = DEFAULT_MODES,
) -> TargetPlan:
    """Plan all requested methods of *target*.

    Requests are processed in `Mode` order and their sources in (namespace,
    name) order, so the plan does not depend on the order in which the
    requests or sources were declared.

    Raises:
        ValueError: if a request belongs to another target, or the target kind
            cannot receive generated code.
    """
    if not target.kind.can_be_target:
        msg = f"cannot generate code for {target}"
        raise ValueError(msg)

    by_mode: dict[Mode, list[TypeDescriptor]] = {}
    for request in requests:
        if request.target.qualified_name != target.qualified_name:
            msg = f"{request} does not target {target.qualified_name}"
            raise ValueError(msg)
        by_mode.setdefault(request.mode, []).extend(request.sources)

    planner = _Planner(target, registry)
    methods: list[MethodPlan] = []
    for mode in Mode:
        if mode not in by_mode:
            continue
        config = modes[mode]
        for source in _ordered_sources(by_mode[mode]):
            method = planner.plan_method(source, config)
            _logger.debug(
                "%s.%s(%s): %d member(s)",
                target.qualified_name,
                config.method,
                method.source,
                len(method.steps),
            )
            methods.append(method)
    return planner.finish(methods)


def member_pairs(
    target: TypeDescriptor,
    source: TypeDescriptor,
    registry: TypeRegistry,
    /,
    config: ModeConfig = DEFAULT_MODES[Mode.COPY],
) -> list[tuple[MemberDescriptor, MemberDescriptor]]:
    """The `(written, read)` pairs a method of *config* on *target* copies.

    A self source pairs the target's own members, private ones included.
    """
    return _Planner(target, registry).member_pairs(source, config)
