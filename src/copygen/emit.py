from __future__ import annotations

from typing import TYPE_CHECKING, Final

from copygen.model import ReturnShape
from copygen.plan import NullHandling

if TYPE_CHECKING:
    from copygen.plan import (
        MemberStep,
        MethodPlan,
        PassthroughUnit,
        TargetPlan,
        TransformHook,
    )

__all__ = "render_unit", "unit_name"


_HEADER: Final = "// <auto-generated/>"
_INDENT: Final = "    "


def unit_name(plan: TargetPlan, /) -> str:
    """The file name of the generated unit, e.g. ``Foxtrot.g.cs``."""
    return f"{plan.target.name}.g.cs"


def _summary(text: str, indent: str = _INDENT) -> list[str]:
    return [
        f"{indent}/// <summary>",
        f"{indent}/// {text}",
        f"{indent}/// </summary>",
    ]


def _render_transform(hook: TransformHook) -> list[str]:
    return [
        *_summary(f"Transforms the {hook.member} value before it is assigned."),
        f"{_INDENT}static partial void {hook.name}(ref {hook.type} value);",
    ]


def _render_passthrough(unit: PassthroughUnit) -> list[str]:
    body = _INDENT * 2
    lines = [
        *_summary(f"Reads and transforms the {unit.member} constructor argument."),
        f"{_INDENT}static {unit.type} {unit.name}({unit.source} source)",
        f"{_INDENT}{{",
    ]
    if unit.null_guard:
        lines.append(
            f"{body}if (ReferenceEquals(null, source)) "
            "throw new ArgumentNullException(nameof(source));",
        )
    lines.extend((
        f"{body}var value = source.{unit.source_member};",
        f"{body}{unit.transform}(ref value);",
        f"{body}return value;",
        f"{_INDENT}}}",
    ))
    return lines


def _hook_params(method: MethodPlan) -> str:
    ref = "ref " if method.by_ref else ""
    params = f"{ref}{method.source} {method.param}"
    if method.returns is ReturnShape.COUNT:
        params += ", ref int changeCount"
    return params


def _hook_args(method: MethodPlan) -> str:
    ref = "ref " if method.by_ref else ""
    args = f"{ref}{method.param}"
    if method.returns is ReturnShape.COUNT:
        args += ", ref changeCount"
    return args


def _render_hook_declarations(method: MethodPlan) -> list[list[str]]:
    blocks: list[list[str]] = []
    if method.before_hook:
        blocks.append([
            *_summary(f"Runs before {method.name} copies any value."),
            f"{_INDENT}partial void {method.before_hook}({_hook_params(method)});",
        ])
    if method.after_hook:
        blocks.append([
            *_summary(f"Runs after {method.name} has copied all values."),
            f"{_INDENT}partial void {method.after_hook}({_hook_params(method)});",
        ])
    return blocks


def _early_return(method: MethodPlan) -> str:
    match method.returns:
        case ReturnShape.COUNT:
            return "return 0;"
        case ReturnShape.SELF:
            return "return this;"
        case _:
            return "return;"


def _render_guards(method: MethodPlan, indent: str) -> list[str]:
    lines: list[str] = []
    if method.null_guard:
        if method.returns is ReturnShape.CONSTRUCTOR:
            failure = f"throw new ArgumentNullException(nameof({method.param}));"
        else:
            failure = _early_return(method)
        lines.append(f"{indent}if (ReferenceEquals(null, {method.param})) {failure}")
    if method.self_guard:
        early_return = _early_return(method)
        lines.append(
            f"{indent}if (ReferenceEquals(this, {method.param})) {early_return}",
        )
    return lines


def _render_step(method: MethodPlan, step: MemberStep, indent: str) -> list[str]:
    # locals are named after the written member, which is unique per method
    incoming = f"{method.provider}_{step.written}"
    current = f"{method.receiver}_{step.written}"
    target = f"{method.receiver}.{step.written}"
    lines = [f"{indent}var {incoming} = {method.provider}.{step.read};"]

    if method.returns is not ReturnShape.COUNT:
        lines.append(f"{indent}{step.transform}(ref {incoming});")
        if step.null_handling is NullHandling.NOT_NULL:
            lines.append(
                f"{indent}if (!ReferenceEquals(null, {incoming})) "
                f"{target} = {incoming};",
            )
        else:
            lines.append(f"{indent}{target} = {incoming};")
        return lines

    lines.insert(0, f"{indent}var {current} = {target};")
    lines.append(f"{indent}{step.transform}(ref {incoming});")
    match step.null_handling:
        case NullHandling.VALUE:
            changed = f"!{current}.Equals({incoming})"
        case NullHandling.NOT_NULL:
            changed = (
                f"!ReferenceEquals(null, {incoming}) "
                f"&& !ReferenceEquals({current}, {incoming}) "
                f"&& (ReferenceEquals(null, {current}) "
                f"|| !{current}.Equals({incoming}))"
            )
        case NullHandling.NULLABLE:
            changed = (
                f"!ReferenceEquals({current}, {incoming}) "
                f"&& (ReferenceEquals(null, {current}) "
                f"|| !{current}.Equals({incoming}))"
            )
    lines.extend((
        f"{indent}if ({changed})",
        f"{indent}{{",
        f"{indent}{_INDENT}{target} = {incoming};",
        f"{indent}{_INDENT}changeCount++;",
        f"{indent}}}",
    ))
    return lines


def _render_method(method: MethodPlan) -> list[str]:
    body = _INDENT * 2
    lines = [
        *_summary(method.comment),
        f"{_INDENT}{method.declaration}",
        f"{_INDENT}{{",
        *_render_guards(method, body),
    ]
    if method.returns is ReturnShape.COUNT:
        lines.append(f"{body}var changeCount = 0;")
    if method.before_hook:
        lines.append(f"{body}{method.before_hook}({_hook_args(method)});")
    for step in method.steps:
        lines.extend(_render_step(method, step, body))
    if method.after_hook:
        lines.append(f"{body}{method.after_hook}({_hook_args(method)});")
    match method.returns:
        case ReturnShape.COUNT:
            lines.append(f"{body}return changeCount;")
        case ReturnShape.SELF:
            lines.append(f"{body}return this;")
        case _:
            pass
    lines.append(f"{_INDENT}}}")
    return lines


def render_unit(plan: TargetPlan, /) -> str:
    """Render the generated source unit of one target type.

    Transform hooks come first, then the passthrough functions, then each
    method preceded by its hook declarations. Members are separated by a
    blank line. The output always ends with a single newline.
    """
    target = plan.target
    lines = [_HEADER, "", "using System;", ""]
    if target.namespace:
        lines.extend((f"namespace {target.namespace};", ""))
    lines.extend((
        "#nullable enable",
        "#pragma warning disable CS0108, CS0109",
        "",
        f"partial {target.kind} {target.name}",
        "{",
    ))

    blocks = [_render_transform(hook) for hook in plan.transforms]
    blocks.extend(_render_passthrough(unit) for unit in plan.passthroughs)
    for method in plan.methods:
        blocks.extend(_render_hook_declarations(method))
        blocks.append(_render_method(method))
    for index, block in enumerate(blocks):
        if index:
            lines.append("")
        lines.extend(block)

    lines.append("}")
    return "\n".join(lines) + "\n"
