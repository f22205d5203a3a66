"""Declaration and doc-comment templates for the generated methods.

These are pure functions of their arguments. `ModeConfig` carries one of
each per mode, so a project can swap them without touching the planner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, override

from copygen.model import Mode, ReturnShape

if TYPE_CHECKING:
    from collections.abc import Callable

    from copygen.model import TypeKind

__all__ = (
    "CommentFormatter",
    "DeclarationFormatter",
    "Shape",
    "constructor_declaration",
    "copy_comment",
    "copy_to_comment",
    "init_comment",
    "method_declaration",
    "update_comment",
    "update_target_comment",
)


@dataclass(frozen=True, slots=True)
class Shape:
    """What a formatter needs to know about the method being declared."""

    mode: Mode
    method: str
    returns: ReturnShape
    target_kind: TypeKind
    # the parameter is a struct written through (`ref`)
    by_ref: bool = False
    # constructor initializer, e.g. `this()`
    initializer: str | None = None

    @override
    def __str__(self) -> str:
        return f"{self.mode}: {self.method} -> {self.returns}"


type DeclarationFormatter = Callable[[str, str, str, Shape], str]
type CommentFormatter = Callable[[str, str, Shape], str]


def constructor_declaration(target: str, source: str, param: str, shape: Shape) -> str:
    declaration = f"public {target}({source} {param})"
    if shape.initializer:
        declaration += f" : {shape.initializer}"
    return declaration


def method_declaration(target: str, source: str, param: str, shape: Shape) -> str:
    match shape.returns:
        case ReturnShape.SELF:
            returns = target
        case ReturnShape.COUNT:
            returns = "int"
        case ReturnShape.VOID:
            returns = "void"
        case _:
            msg = f"{shape.mode} methods cannot return {shape.returns}"
            raise ValueError(msg)
    ref = "ref " if shape.by_ref else ""
    return f"public {returns} {shape.method}({ref}{source} {param})"


def init_comment(target: str, source: str, shape: Shape) -> str:  # noqa: ARG001
    return (
        f'Creates a new <see cref="{target}"/> '
        f'from the values of a <see cref="{source}"/>.'
    )


def copy_comment(target: str, source: str, shape: Shape) -> str:
    text = (
        f'Copies the values of a <see cref="{source}"/> '
        f'into this <see cref="{target}"/>.'
    )
    if shape.returns is ReturnShape.SELF:
        text += " Returns this instance."
    return text


def update_comment(target: str, source: str, shape: Shape) -> str:  # noqa: ARG001
    return (
        f'Updates this <see cref="{target}"/> from a <see cref="{source}"/> '
        "and returns the number of values that changed."
    )


def copy_to_comment(target: str, source: str, shape: Shape) -> str:
    text = (
        f'Copies the values of this <see cref="{target}"/> '
        f'into a <see cref="{source}"/>.'
    )
    if shape.returns is ReturnShape.SELF:
        text += " Returns this instance."
    return text


def update_target_comment(
    target: str,
    source: str,
    shape: Shape,  # noqa: ARG001
) -> str:
    return (
        f'Updates a <see cref="{source}"/> from this <see cref="{target}"/> '
        "and returns the number of values that changed."
    )
