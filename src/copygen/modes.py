from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, Self

from copygen import formatters
from copygen.model import Mode, ReturnShape

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = "DEFAULT_MODES", "ModeConfig"


@dataclass(frozen=True, slots=True)
class ModeConfig:
    """Everything that differs between the generated method kinds.

    `method` names the generated method and prefixes its hooks
    (`Before{method}`, `After{method}`, `{method}Transform_{member}`).
    When `swapped`, the generating type is the one read from and the
    parameter is written to.
    """

    mode: Mode
    method: str
    returns: ReturnShape
    annotation: str
    declaration: formatters.DeclarationFormatter
    comment: formatters.CommentFormatter
    before: bool = True
    after: bool = True
    swapped: bool = False

    @property
    def is_constructor(self) -> bool:
        return self.returns is ReturnShape.CONSTRUCTOR

    @property
    def is_counted(self) -> bool:
        return self.returns is ReturnShape.COUNT

    @property
    def param(self) -> str:
        return "target" if self.swapped else "source"

    @property
    def before_hook(self) -> str | None:
        return f"Before{self.method}" if self.before else None

    @property
    def after_hook(self) -> str | None:
        return f"After{self.method}" if self.after else None

    def transform_hook(self, member: str, /) -> str:
        return f"{self.method}Transform_{member}"

    def with_options(self, options: Mapping[str, Any], /) -> Self:
        """Apply user options (``method``, ``before``, ``after``, ``returns``).

        Raises:
            ValueError: for unknown options, wrongly typed values, or a return
                shape the mode cannot have.
        """
        changes: dict[str, Any] = {}
        for key, value in options.items():
            match key:
                case "method":
                    if not isinstance(value, str) or not value.isidentifier():
                        msg = f"{self.mode}.method must be an identifier, got {value!r}"
                        raise ValueError(msg)
                    changes["method"] = value
                case "before" | "after":
                    if not isinstance(value, bool):
                        msg = f"{self.mode}.{key} must be a boolean, got {value!r}"
                        raise ValueError(msg)
                    changes[key] = value
                case "returns":
                    changes["returns"] = self._parse_returns(value)
                case _:
                    msg = f"unknown option {key!r} for mode {self.mode}"
                    raise ValueError(msg)
        return dataclasses.replace(self, **changes)

    def _parse_returns(self, value: object, /) -> ReturnShape:
        try:
            returns = ReturnShape(value)
        except ValueError:
            returns = None
        # only the plain copy methods may switch between `void` and `self`
        allowed = (
            {ReturnShape.VOID, ReturnShape.SELF}
            if self.returns in {ReturnShape.VOID, ReturnShape.SELF}
            else {self.returns}
        )
        if returns not in allowed:
            choices = ", ".join(sorted(allowed))
            msg = f"{self.mode}.returns must be one of {choices}, got {value!r}"
            raise ValueError(msg)
        return returns


DEFAULT_MODES: Final[Mapping[Mode, ModeConfig]] = MappingProxyType({
    Mode.INIT: ModeConfig(
        Mode.INIT,
        method="Init",
        returns=ReturnShape.CONSTRUCTOR,
        annotation="EnableInitFrom",
        declaration=formatters.constructor_declaration,
        comment=formatters.init_comment,
        before=False,
    ),
    Mode.COPY: ModeConfig(
        Mode.COPY,
        method="CopyFrom",
        returns=ReturnShape.VOID,
        annotation="EnableCopyFrom",
        declaration=formatters.method_declaration,
        comment=formatters.copy_comment,
    ),
    Mode.UPDATE: ModeConfig(
        Mode.UPDATE,
        method="UpdateFrom",
        returns=ReturnShape.COUNT,
        annotation="EnableUpdateFrom",
        declaration=formatters.method_declaration,
        comment=formatters.update_comment,
    ),
    Mode.COPY_TO: ModeConfig(
        Mode.COPY_TO,
        method="CopyTo",
        returns=ReturnShape.VOID,
        annotation="EnableCopyTo",
        declaration=formatters.method_declaration,
        comment=formatters.copy_to_comment,
        swapped=True,
    ),
    Mode.UPDATE_TARGET: ModeConfig(
        Mode.UPDATE_TARGET,
        method="UpdateTarget",
        returns=ReturnShape.COUNT,
        annotation="EnableUpdateTarget",
        declaration=formatters.method_declaration,
        comment=formatters.update_target_comment,
        swapped=True,
    ),
})
