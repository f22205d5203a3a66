from __future__ import annotations

import logging
import re
from collections import deque
from typing import TYPE_CHECKING, Final

from copygen.model import Accessibility, MemberDescriptor, MemberKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from copygen.model import TypeDescriptor, TypeRegistry

__all__ = "collect_members", "match_members", "pair_members", "walk_types"


_logger: Final = logging.getLogger(__name__)

# Synthetic names (e.g. compiler-generated backing storage) never match this.
_RE_VALID_NAME: Final = re.compile(r"^[A-Z_][A-Z0-9_]*$", re.IGNORECASE)


def walk_types(
    type_: TypeDescriptor,
    registry: TypeRegistry,
    /,
) -> Iterator[TypeDescriptor]:
    """Yield *type_*, its interfaces and its ancestors, each exactly once.

    Interfaces are visited depth first in declaration order, before the base
    type. A type reachable through more than one path (e.g. an interface
    implemented at two levels of the hierarchy) is only yielded the first
    time.
    """
    visited: set[str] = set()
    pending: deque[TypeDescriptor] = deque([type_])
    while pending:
        current = pending.pop()
        if current.qualified_name in visited:
            continue
        visited.add(current.qualified_name)
        yield current

        # stack: the base is pushed first so that interfaces are popped first
        supertypes = [current.base] if current.base else []
        supertypes.extend(reversed(current.interfaces))
        for name in supertypes:
            if (supertype := registry.get(name)) is None:
                _logger.debug("%s: unknown supertype %s", current.qualified_name, name)
                continue
            pending.append(supertype)


def _rank(member: MemberDescriptor, /) -> tuple[bool, str]:
    # properties first, then ordinal name order
    return member.kind is not MemberKind.PROPERTY, member.name


def _property_ok(
    member: MemberDescriptor,
    *,
    inherited: bool,
    include_non_public: bool,
    include_read_only: bool,
    include_init_only: bool,
) -> bool:
    if member.is_write_only:
        return False
    if inherited:
        # private accessors of a supertype are not accessible from the subtype
        if member.getter is Accessibility.PRIVATE:
            return False
        if not include_read_only and member.setter is Accessibility.PRIVATE:
            return False
    if not include_non_public:
        if member.getter is not Accessibility.PUBLIC:
            return False
        # writes from outside the declaring type need a public setter too
        if not include_read_only and member.setter not in {None, Accessibility.PUBLIC}:
            return False
    if not include_read_only:
        if member.is_read_only:
            return False
        if not include_init_only and member.is_init_only:
            return False
    return True


def _field_ok(
    member: MemberDescriptor,
    *,
    inherited: bool,
    include_non_public: bool,
    include_read_only: bool,
) -> bool:
    if member.is_const or not _RE_VALID_NAME.match(member.name):
        return False
    if inherited and member.getter is Accessibility.PRIVATE:
        return False
    if not include_non_public and member.getter is not Accessibility.PUBLIC:
        return False
    return include_read_only or not member.is_read_only


def _eligible(
    type_: TypeDescriptor,
    *,
    inherited: bool,
    include_non_public: bool,
    include_read_only: bool,
    include_init_only: bool,
) -> Iterator[MemberDescriptor]:
    # properties before fields, so a property wins over its backing field
    for member in type_.properties:
        if _property_ok(
            member,
            inherited=inherited,
            include_non_public=include_non_public,
            include_read_only=include_read_only,
            include_init_only=include_init_only,
        ):
            yield member
    for member in type_.fields:
        if _field_ok(
            member,
            inherited=inherited,
            include_non_public=include_non_public,
            include_read_only=include_read_only,
        ):
            yield member


def collect_members(
    type_: TypeDescriptor,
    registry: TypeRegistry,
    /,
    *,
    include_non_public: bool,
    include_read_only: bool,
    include_init_only: bool,
) -> tuple[MemberDescriptor, ...]:
    """Collect the copyable members of *type_* and all of its supertypes.

    With *include_non_public* unset, only members readable from outside the
    declaring type are kept; if *include_read_only* is unset as well, they
    must also be writable from outside. Read-only members are dropped unless
    *include_read_only* is set, init-only members unless either flag is set.
    Static and skip-annotated members are never included, and neither are
    private members of a supertype.

    Alias-equal members (see `MemberDescriptor`) are collapsed. A member of a
    more derived type wins; within one type a property wins over a field and
    then the ordinal smallest name, whatever the declaration order. The
    result is in discovery order.
    """
    found: dict[MemberDescriptor, MemberDescriptor] = {}
    for current in walk_types(type_, registry):
        for member in _eligible(
            current,
            inherited=current is not type_,
            include_non_public=include_non_public,
            include_read_only=include_read_only,
            include_init_only=include_init_only,
        ):
            if member.skip or member.is_static:
                _logger.debug("skipping %s.%s", current.qualified_name, member.name)
                continue
            previous = found.setdefault(member, member)
            if (
                previous.declaring_type == member.declaring_type
                and _rank(member) < _rank(previous)
            ):
                found[member] = member
    return tuple(found.values())


def match_members(
    target_members: Sequence[MemberDescriptor],
    source: TypeDescriptor,
    registry: TypeRegistry,
    /,
) -> tuple[MemberDescriptor, ...]:
    """The target members with a same-named, same-typed counterpart on *source*.

    Only members readable from outside *source* are considered.
    """
    source_members = collect_members(
        source,
        registry,
        include_non_public=False,
        include_read_only=True,
        include_init_only=True,
    )
    return tuple(m for m in target_members if m in source_members)


def pair_members(
    written: Iterable[MemberDescriptor],
    read: Sequence[MemberDescriptor],
    /,
) -> list[tuple[MemberDescriptor, MemberDescriptor]]:
    """Pair every written member with an alias-equal read member.

    Among several candidates a property wins over a field, then the ordinal
    smallest name. Written members without a counterpart are dropped. The
    pairs are sorted by the written member's name.
    """
    pairs: list[tuple[MemberDescriptor, MemberDescriptor]] = []
    for member in written:
        if candidates := [r for r in read if r == member]:
            pairs.append((member, min(candidates, key=_rank)))
    pairs.sort(key=lambda pair: (pair[0].name.casefold(), pair[0].name))
    return pairs
