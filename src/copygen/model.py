from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final, Self, override

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

__all__ = (
    "Accessibility",
    "MemberDescriptor",
    "MemberKind",
    "Mode",
    "ReturnShape",
    "TypeDescriptor",
    "TypeKind",
    "TypeRef",
    "TypeRegistry",
)

# Keyword aliases of the host language; `System.Int32` and `int` are one type.
_KEYWORD_ALIASES: Final[dict[str, str]] = {
    "System.Boolean": "bool",
    "System.Byte": "byte",
    "System.SByte": "sbyte",
    "System.Char": "char",
    "System.Decimal": "decimal",
    "System.Double": "double",
    "System.Single": "float",
    "System.Int16": "short",
    "System.UInt16": "ushort",
    "System.Int32": "int",
    "System.UInt32": "uint",
    "System.Int64": "long",
    "System.UInt64": "ulong",
    "System.IntPtr": "nint",
    "System.UIntPtr": "nuint",
    "System.Object": "object",
    "System.String": "string",
}
_VALUE_KEYWORDS: Final = frozenset({
    "bool",
    "byte",
    "char",
    "decimal",
    "double",
    "float",
    "int",
    "long",
    "nint",
    "nuint",
    "sbyte",
    "short",
    "uint",
    "ulong",
    "ushort",
})
# Well-known framework structs that are never declared in a model file.
_FRAMEWORK_VALUE_TYPES: Final = frozenset({
    "System.DateOnly",
    "System.DateTime",
    "System.DateTimeOffset",
    "System.Guid",
    "System.TimeOnly",
    "System.TimeSpan",
})
_RE_SPACES: Final = re.compile(r"\s+")
_RE_COMPOUND: Final = re.compile(r"[<>\[\](),]")
_RE_PUNCTUATION_SPACES: Final = re.compile(r"\s*([<>\[\](),?])\s*")
_RE_NAME: Final = re.compile(r"(?:global::)?[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*")
_RE_LIST_SEPARATOR: Final = re.compile(r",(?=[\w(])")

type _TypeResolver = Callable[[str], TypeDescriptor | None]


def _canonical_compound(text: str, resolver: _TypeResolver | None, /) -> str:
    """Normalize every name in e.g. ``Dictionary<System.String,List<Point>>``.

    Nullability annotations inside the arguments are kept as written.
    """

    def _name(match: re.Match[str]) -> str:
        name = match.group().removeprefix("global::")
        name = _KEYWORD_ALIASES.get(name, name)
        if resolver is not None and (declared := resolver(name)) is not None:
            return declared.qualified_name
        return name

    compact = _RE_NAME.sub(_name, _RE_PUNCTUATION_SPACES.sub(r"\1", text))
    return _RE_LIST_SEPARATOR.sub(", ", compact)


class Accessibility(StrEnum):
    PUBLIC = "public"
    PROTECTED_INTERNAL = "protected internal"
    INTERNAL = "internal"
    PROTECTED = "protected"
    PRIVATE_PROTECTED = "private protected"
    PRIVATE = "private"


class TypeKind(StrEnum):
    CLASS = "class"
    STRUCT = "struct"
    RECORD = "record"
    RECORD_STRUCT = "record struct"
    INTERFACE = "interface"
    ENUM = "enum"

    @property
    def is_value_type(self) -> bool:
        return self in {TypeKind.STRUCT, TypeKind.RECORD_STRUCT, TypeKind.ENUM}

    @property
    def can_be_target(self) -> bool:
        """Whether a partial declaration of this kind can receive generated code."""
        return self not in {TypeKind.INTERFACE, TypeKind.ENUM}


class MemberKind(StrEnum):
    FIELD = "field"
    PROPERTY = "property"


class Mode(StrEnum):
    """The kinds of generated copy methods, in emission order."""

    INIT = "init"
    COPY = "copy"
    UPDATE = "update"
    COPY_TO = "copy_to"
    UPDATE_TARGET = "update_target"


class ReturnShape(StrEnum):
    VOID = "void"
    SELF = "self"  # returns `this`
    COUNT = "count"  # returns the number of changed members
    CONSTRUCTOR = "constructor"


@dataclass(frozen=True, slots=True)
class TypeRef:
    """A member's declared type.

    `display` is the type as written, `identity` the key used for type
    identity comparisons. A `?` on a reference type is only a nullability
    annotation and is not part of the identity; on a value type it denotes a
    different (nullable) type and is.
    """

    display: str
    identity: str
    is_value_type: bool = False
    is_nullable: bool = False

    @override
    def __str__(self) -> str:
        return self.display

    @property
    def is_reference_type(self) -> bool:
        return not self.is_value_type

    @property
    def is_non_nullable_reference(self) -> bool:
        return not self.is_value_type and not self.is_nullable

    @classmethod
    def parse(
        cls,
        text: str,
        resolver: _TypeResolver | None = None,
        *,
        value_types: frozenset[str] = frozenset(),
    ) -> Self:
        """Parse a type as written, e.g. ``int``, ``string?`` or ``Ns.Point?``.

        *resolver* maps a (possibly unqualified) name to a declared type, whose
        qualified name then becomes the identity. *value_types* lists extra
        external types known to be value types.
        """
        display = _RE_SPACES.sub(" ", text.strip())
        if not display:
            msg = "empty type name"
            raise ValueError(msg)

        nullable = display.endswith("?")
        name = display.removesuffix("?").strip().removeprefix("global::")
        name = _KEYWORD_ALIASES.get(name, name)

        declared = resolver(name) if resolver is not None else None
        if declared is not None:
            name = declared.qualified_name
            is_value = declared.kind.is_value_type
            # qualified, so the name still resolves in another namespace
            display = f"{name}?" if nullable else name
        elif _RE_COMPOUND.search(name):
            # generic arguments, arrays and tuples: normalize each name in it
            name = _canonical_compound(name, resolver)
            display = f"{name}?" if nullable else name
            is_value = name.startswith("(") or name in value_types
        else:
            is_value = (
                name in _VALUE_KEYWORDS
                or name in _FRAMEWORK_VALUE_TYPES
                or name in value_types
            )

        identity = f"{name}?" if nullable and is_value else name
        return cls(display, identity, is_value, nullable)


@dataclass(frozen=True, slots=True, eq=False)
class MemberDescriptor:
    """A normalized field or property.

    Two descriptors are equal when their declared types are identical and
    their names match, where a name matches the other's name or alternate
    name (case-insensitive). The alternate name of a field drops one leading
    underscore, so a field `_value` and a property `Value` of the same type
    are the same member.
    """

    name: str
    type: TypeRef
    kind: MemberKind
    declaring_type: str
    # a field's accessibility is stored as its getter; `None` means absent
    getter: Accessibility | None
    setter: Accessibility | None
    is_init_only: bool = False
    is_const: bool = False
    is_static: bool = False
    skip: bool = False

    @property
    def alternate_name(self) -> str:
        if self.kind is MemberKind.FIELD and self.name.startswith("_"):
            return self.name[1:]
        return self.name

    @property
    def is_field(self) -> bool:
        return self.kind is MemberKind.FIELD

    @property
    def is_property(self) -> bool:
        return self.kind is MemberKind.PROPERTY

    @property
    def can_read(self) -> bool:
        return self.getter is not None

    @property
    def can_write(self) -> bool:
        return self.setter is not None

    @property
    def is_read_only(self) -> bool:
        return self.setter is None

    @property
    def is_write_only(self) -> bool:
        return self.is_property and self.getter is None

    def _names(self) -> frozenset[str]:
        return frozenset({self.name.casefold(), self.alternate_name.casefold()})

    @override
    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, MemberDescriptor):
            return NotImplemented
        if self.type.identity != other.type.identity:
            return False
        return not self._names().isdisjoint(other._names())

    @override
    def __hash__(self) -> int:
        # equal names differ at most by leading underscores
        return hash((self.type.identity, self.name.lstrip("_").casefold()))

    @override
    def __str__(self) -> str:
        return f"{self.type} {self.name}"


@dataclass(frozen=True, slots=True)
class TypeDescriptor:
    name: str
    namespace: str
    kind: TypeKind
    members: tuple[MemberDescriptor, ...] = ()
    # primary constructor parameter names, in declaration order
    parameters: tuple[str, ...] = ()
    base: str | None = None
    interfaces: tuple[str, ...] = ()
    has_default_constructor: bool = True

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    @property
    def is_value_type(self) -> bool:
        return self.kind.is_value_type

    @property
    def has_primary_constructor(self) -> bool:
        return bool(self.parameters)

    @property
    def properties(self) -> tuple[MemberDescriptor, ...]:
        return tuple(m for m in self.members if m.is_property)

    @property
    def fields(self) -> tuple[MemberDescriptor, ...]:
        return tuple(m for m in self.members if m.is_field)

    def sort_key(self) -> tuple[str, str]:
        return self.namespace, self.name

    @override
    def __str__(self) -> str:
        return f"{self.kind} {self.qualified_name}"


type TypeRegistry = Mapping[str, TypeDescriptor]
