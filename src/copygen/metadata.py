"""Load type declarations and copy requests from TOML model files.

A model file declares the types of one namespace::

    namespace = "Samples"

    [[type]]
    name = "Person"
    kind = "record"
    parameters = ["string Name", "int Age"]
    init_from = ["PersonDto"]

    [[type.member]]
    name = "Email"
    type = "string?"
    accessors = "get; init;"

Type names are resolved the way the host compiler resolves them: first in the
file's namespace, then in each enclosing namespace, and finally as a fully
qualified name.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import anyio

from copygen.model import (
    Accessibility,
    MemberDescriptor,
    MemberKind,
    Mode,
    TypeDescriptor,
    TypeKind,
    TypeRef,
)
from copygen.modes import DEFAULT_MODES
from copygen.plan import GenerationRequest

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from _typeshed import StrPath  # noqa: PLC2701

    from copygen.model import TypeRegistry

__all__ = "ModelError", "ModelSet", "load_models", "parse_accessors", "parse_models"


_logger: Final = logging.getLogger(__name__)

# the model keys that request generated methods
_REQUEST_KEYS: Final[Mapping[Mode, str]] = {
    Mode.INIT: "init_from",
    Mode.COPY: "copy_from",
    Mode.UPDATE: "update_from",
    Mode.COPY_TO: "copy_to",
    Mode.UPDATE_TARGET: "update_target",
}
_TYPE_KEYS: Final = frozenset({
    "name",
    "kind",
    "parameters",
    "default_constructor",
    "base",
    "interfaces",
    "member",
    *_REQUEST_KEYS.values(),
})
_MEMBER_KEYS: Final = frozenset({
    "name",
    "type",
    "kind",
    "access",
    "accessors",
    "readonly",
    "const",
    "static",
    "skip",
})
_DEFAULT_ACCESSORS: Final = "get; set;"


class ModelError(ValueError):
    """A model file is malformed."""


@dataclass(frozen=True, slots=True)
class _Declaration:
    """A `[[type]]` table after the first pass; names are still unresolved."""

    name: str
    namespace: str
    kind: TypeKind
    table: Mapping[str, Any]
    source: str

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    @property
    def stub(self) -> TypeDescriptor:
        return TypeDescriptor(self.name, self.namespace, self.kind)


@dataclass(frozen=True, slots=True)
class ModelSet:
    """All declared types, and the copy methods requested on them."""

    registry: TypeRegistry
    request_list: tuple[GenerationRequest, ...] = ()

    def requests(self, target: str | None = None, /) -> Iterator[GenerationRequest]:
        """Yield the requests, optionally only those of one target."""
        for request in self.request_list:
            if target is None or request.target.qualified_name == target:
                yield request

    def targets(self) -> list[TypeDescriptor]:
        """The types with at least one request, sorted by qualified name."""
        names = {r.target.qualified_name for r in self.request_list}
        return [self.registry[name] for name in sorted(names)]

    def lookup(self, name: str, /) -> TypeDescriptor | None:
        """Find a type by its qualified or (if unambiguous) simple name."""
        if (found := self.registry.get(name)) is not None:
            return found
        matches = [t for t in self.registry.values() if t.name == name]
        return matches[0] if len(matches) == 1 else None


def _check_keys(table: Mapping[str, Any], allowed: frozenset[str], where: str) -> None:
    if unknown := sorted(set(table) - allowed):
        msg = f"{where}: unknown key(s) {', '.join(map(repr, unknown))}"
        raise ModelError(msg)


def _get_str(
    table: Mapping[str, Any],
    key: str,
    where: str,
    default: str | None = None,
) -> str:
    value = table.get(key, default)
    if not isinstance(value, str) or not value.strip():
        msg = f"{where}: {key!r} must be a non-empty string, got {value!r}"
        raise ModelError(msg)
    return value.strip()


def _get_bool(
    table: Mapping[str, Any],
    key: str,
    where: str,
    default: bool = False,  # noqa: FBT001, FBT002
) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        msg = f"{where}: {key!r} must be a boolean, got {value!r}"
        raise ModelError(msg)
    return value


def _get_names(table: Mapping[str, Any], key: str, where: str) -> list[str]:
    value = table.get(key, [])
    if not isinstance(value, list) or not all(
        isinstance(v, str) and v.strip() for v in value
    ):
        msg = f"{where}: {key!r} must be a list of names, got {value!r}"
        raise ModelError(msg)
    return [v.strip() for v in value]


def _enum_value[E: (Accessibility, MemberKind, TypeKind)](
    cls: type[E],
    text: str,
    where: str,
) -> E:
    if not isinstance(text, str):
        msg = f"{where}: expected a string, got {text!r}"
        raise ModelError(msg)
    try:
        return cls(" ".join(text.split()))
    except ValueError:
        choices = ", ".join(map(repr, cls))
        msg = f"{where}: expected one of {choices}, got {text!r}"
        raise ModelError(msg) from None


def _parse_parameter(text: str, where: str) -> tuple[str, str]:
    """Split a primary constructor parameter like ``string? Name``."""
    type_, _, name = text.strip().rpartition(" ")
    if not type_.strip() or not name.isidentifier():
        msg = f"{where}: invalid parameter {text!r}, expected '<type> <name>'"
        raise ModelError(msg)
    return type_.strip(), name


def parse_accessors(
    text: str,
    access: Accessibility,
    /,
) -> tuple[Accessibility | None, Accessibility | None, bool]:
    """Parse a property accessor list like ``get; private set;``.

    Returns the getter and setter accessibility (``None`` if absent) and
    whether the setter is ``init``.

    Raises:
        ModelError: for unknown or repeated accessors.
    """
    getter: Accessibility | None = None
    setter: Accessibility | None = None
    init_only = False
    seen: set[str] = set()
    for part in filter(None, (p.strip() for p in text.split(";"))):
        *modifiers, accessor = part.split()
        if accessor not in {"get", "set", "init"} or accessor in seen:
            msg = f"invalid accessor {part!r} in {text!r}"
            raise ModelError(msg)
        if {accessor, *seen} >= {"set", "init"}:
            msg = f"a property cannot have both 'set' and 'init': {text!r}"
            raise ModelError(msg)
        seen.add(accessor)
        level = access
        if modifiers:
            level = _enum_value(Accessibility, " ".join(modifiers), text)
        if accessor == "get":
            getter = level
        else:
            setter = level
            init_only = accessor == "init"
    if not seen:
        msg = f"empty accessor list {text!r}"
        raise ModelError(msg)
    return getter, setter, init_only


class _Loader:
    """Two passes: collect every declaration, then resolve names and build
    the descriptors."""

    _value_types: frozenset[str]
    _declarations: dict[str, _Declaration]

    def __init__(self, *, value_types: frozenset[str]) -> None:
        self._value_types = value_types
        self._declarations = {}

    def add_document(self, text: str, source: str, /) -> None:
        try:
            document = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            msg = f"{source}: {exc}"
            raise ModelError(msg) from exc

        _check_keys(document, frozenset({"namespace", "type"}), source)
        namespace = document.get("namespace", "")
        if not isinstance(namespace, str):
            msg = f"{source}: 'namespace' must be a string, got {namespace!r}"
            raise ModelError(msg)
        namespace = namespace.strip().removeprefix("global::")

        types = document.get("type", [])
        if not isinstance(types, list):
            msg = f"{source}: 'type' must be an array of tables"
            raise ModelError(msg)

        for index, table in enumerate(types):
            where = f"{source}: type #{index + 1}"
            if not isinstance(table, dict):
                msg = f"{where}: expected a table"
                raise ModelError(msg)
            name = _get_str(table, "name", where)
            where = f"{source}: {name}"
            _check_keys(table, _TYPE_KEYS, where)
            kind = _enum_value(TypeKind, table.get("kind", "class"), where)

            declaration = _Declaration(name, namespace, kind, table, source)
            qualified_name = declaration.qualified_name
            if (previous := self._declarations.get(qualified_name)) is not None:
                msg = f"{where}: {qualified_name} is also declared in {previous.source}"
                raise ModelError(msg)
            self._declarations[qualified_name] = declaration

    def _resolve(self, name: str, namespace: str, /) -> _Declaration | None:
        name = name.removeprefix("global::")
        candidates: list[str] = []
        scope = namespace
        while scope:
            candidates.append(f"{scope}.{name}")
            scope = scope.rpartition(".")[0]
        candidates.append(name)
        for candidate in candidates:
            if (found := self._declarations.get(candidate)) is not None:
                return found
        return None

    def _type_ref(self, text: str, namespace: str, where: str, /) -> TypeRef:
        def resolver(name: str) -> TypeDescriptor | None:
            found = self._resolve(name, namespace)
            return found.stub if found is not None else None

        try:
            return TypeRef.parse(text, resolver, value_types=self._value_types)
        except ValueError as exc:
            msg = f"{where}: {exc}"
            raise ModelError(msg) from exc

    def _supertype(self, name: str, namespace: str, /) -> str:
        # unknown supertypes are kept by name; the member walk skips them
        found = self._resolve(name, namespace)
        return found.qualified_name if found is not None else name

    def _member(
        self,
        table: Mapping[str, Any],
        declaration: _Declaration,
        where: str,
        /,
    ) -> MemberDescriptor:
        if not isinstance(table, dict):
            msg = f"{where}: expected a table"
            raise ModelError(msg)
        name = _get_str(table, "name", where)
        where = f"{where}.{name}"
        _check_keys(table, _MEMBER_KEYS, where)

        namespace = declaration.namespace
        type_ = self._type_ref(_get_str(table, "type", where), namespace, where)
        kind = _enum_value(MemberKind, table.get("kind", "property"), where)
        access_text = _get_str(table, "access", where, "public")
        access = _enum_value(Accessibility, access_text, where)
        is_const = _get_bool(table, "const", where)

        if kind is MemberKind.PROPERTY:
            if "readonly" in table or is_const:
                msg = f"{where}: 'readonly' and 'const' only apply to fields"
                raise ModelError(msg)
            accessors = _get_str(table, "accessors", where, _DEFAULT_ACCESSORS)
            try:
                getter, setter, init_only = parse_accessors(accessors, access)
            except ModelError as exc:
                msg = f"{where}: {exc}"
                raise ModelError(msg) from exc
        else:
            if "accessors" in table:
                msg = f"{where}: 'accessors' only apply to properties"
                raise ModelError(msg)
            readonly = _get_bool(table, "readonly", where) or is_const
            getter, setter, init_only = access, None if readonly else access, readonly

        return MemberDescriptor(
            name=name,
            type=type_,
            kind=kind,
            declaring_type=declaration.qualified_name,
            getter=getter,
            setter=setter,
            is_init_only=init_only,
            is_const=is_const,
            is_static=_get_bool(table, "static", where),
            skip=_get_bool(table, "skip", where),
        )

    def _descriptor(self, declaration: _Declaration, /) -> TypeDescriptor:
        table = declaration.table
        where = f"{declaration.source}: {declaration.name}"
        namespace = declaration.namespace

        raw_parameters = _get_names(table, "parameters", where)
        parameters = [_parse_parameter(p, where) for p in raw_parameters]
        names = [name for _, name in parameters]
        if len(set(names)) != len(names):
            msg = f"{where}: duplicate primary constructor parameter"
            raise ModelError(msg)

        raw_members = table.get("member", [])
        if not isinstance(raw_members, list):
            msg = f"{where}: 'member' must be an array of tables"
            raise ModelError(msg)
        members = [self._member(m, declaration, where) for m in raw_members]
        declared = {m.name for m in members}
        if len(declared) != len(members):
            msg = f"{where}: duplicate member name"
            raise ModelError(msg)

        # positional records declare a property per parameter
        if declaration.kind in {TypeKind.RECORD, TypeKind.RECORD_STRUCT}:
            init_only = declaration.kind is TypeKind.RECORD
            synthesized = [
                MemberDescriptor(
                    name=name,
                    type=self._type_ref(type_, namespace, f"{where}({name})"),
                    kind=MemberKind.PROPERTY,
                    declaring_type=declaration.qualified_name,
                    getter=Accessibility.PUBLIC,
                    setter=Accessibility.PUBLIC,
                    is_init_only=init_only,
                )
                for type_, name in parameters
                if name not in declared
            ]
            members = synthesized + members

        base = table.get("base")
        if base is not None:
            base = self._supertype(_get_str(table, "base", where), namespace)
        interfaces = tuple(
            self._supertype(name, namespace)
            for name in _get_names(table, "interfaces", where)
        )

        default_ctor = not parameters or declaration.kind.is_value_type
        return TypeDescriptor(
            name=declaration.name,
            namespace=namespace,
            kind=declaration.kind,
            members=tuple(members),
            parameters=tuple(names),
            base=base,
            interfaces=interfaces,
            has_default_constructor=_get_bool(
                table,
                "default_constructor",
                where,
                default_ctor,
            ),
        )

    def _requests(
        self,
        declaration: _Declaration,
        registry: TypeRegistry,
        /,
    ) -> Iterator[GenerationRequest]:
        table = declaration.table
        where = f"{declaration.source}: {declaration.name}"
        target = registry[declaration.qualified_name]
        for mode, key in _REQUEST_KEYS.items():
            if not (names := _get_names(table, key, where)):
                continue
            if not target.kind.can_be_target:
                msg = f"{where}: {key!r} is not allowed on {target.kind} types"
                raise ModelError(msg)

            sources: list[TypeDescriptor] = []
            for name in names:
                if (found := self._resolve(name, declaration.namespace)) is None:
                    _logger.warning(
                        "%s: %s(%s) on %s: unknown type, ignoring it",
                        declaration.source,
                        DEFAULT_MODES[mode].annotation,
                        name,
                        declaration.qualified_name,
                    )
                    continue
                sources.append(registry[found.qualified_name])
            if sources:
                yield GenerationRequest(target, tuple(sources), mode)

    def finish(self) -> ModelSet:
        registry = {
            name: self._descriptor(declaration)
            for name, declaration in sorted(self._declarations.items())
        }
        requests = [
            request
            for name in sorted(self._declarations)
            for request in self._requests(self._declarations[name], registry)
        ]
        return ModelSet(registry, tuple(requests))


def parse_models(
    documents: Iterable[tuple[str, str]],
    /,
    *,
    value_types: Iterable[str] = (),
) -> ModelSet:
    """Parse ``(text, source name)`` pairs of model documents.

    Raises:
        ModelError: if a document is malformed.
    """
    loader = _Loader(value_types=frozenset(value_types))
    for text, source in documents:
        loader.add_document(text, source)
    return loader.finish()


async def load_models(
    paths: Iterable[StrPath],
    /,
    *,
    value_types: Iterable[str] = (),
) -> ModelSet:
    """Read and parse the given model files.

    Raises:
        ModelError: if a file is malformed.
    """
    documents: list[tuple[str, str]] = []
    for path in sorted(map(anyio.Path, paths), key=str):
        documents.append((await path.read_text(encoding="utf-8"), path.as_posix()))
    models = parse_models(documents, value_types=value_types)
    _logger.debug(
        "loaded %d type(s) from %d file(s)",
        len(models.registry),
        len(documents),
    )
    return models
