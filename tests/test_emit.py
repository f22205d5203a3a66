from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Final

import pytest

from copygen.emit import render_unit, unit_name
from copygen.metadata import parse_models
from copygen.plan import plan_target

if TYPE_CHECKING:
    from copygen.metadata import ModelSet
    from copygen.plan import TargetPlan

_MODELS_DIR: Final = Path(__file__).parent / "fixtures" / "samples" / "models"


@pytest.fixture(scope="module")
def samples() -> ModelSet:
    paths = sorted(_MODELS_DIR.glob("*.copygen.toml"))
    return parse_models((p.read_text(encoding="utf-8"), p.name) for p in paths)


def _plan(models: ModelSet, name: str) -> TargetPlan:
    target = models.registry[name]
    return plan_target(target, models.requests(name), models.registry)


def _render(models: ModelSet, name: str) -> str:
    return render_unit(_plan(models, name))


class TestLayout:
    def test_unit_name(self, samples: ModelSet) -> None:
        assert unit_name(_plan(samples, "Samples.Alpha")) == "Alpha.g.cs"

    def test_header(self, samples: ModelSet) -> None:
        text = _render(samples, "Samples.Alpha")
        assert text.startswith(
            "// <auto-generated/>\n"
            "\n"
            "using System;\n"
            "\n"
            "namespace Samples;\n"
            "\n"
            "#nullable enable\n"
            "#pragma warning disable CS0108, CS0109\n"
            "\n"
            "partial class Alpha\n"
            "{\n"
            "    /// <summary>\n",
        )
        assert text.endswith("    }\n}\n")
        assert "\r" not in text
        assert "\n\n\n" not in text

    def test_global_namespace(self) -> None:
        models = parse_models([
            (
                '[[type]]\nname = "Loose"\ncopy_from = ["Loose"]\n'
                '[[type.member]]\nname = "A"\ntype = "int"\n',
                "loose.copygen.toml",
            ),
        ])
        text = _render(models, "Loose")
        assert "namespace" not in text
        assert "using System;\n\n#nullable enable\n" in text

    @pytest.mark.parametrize(
        ("name", "declaration"),
        [
            ("Samples.Foxtrot", "partial record Foxtrot\n"),
            ("Samples.Kilo", "partial record struct Kilo\n"),
            ("Samples.Lima", "partial class Lima\n"),
        ],
    )
    def test_kind(self, samples: ModelSet, name: str, declaration: str) -> None:
        assert declaration in _render(samples, name)

    def test_order(self, samples: ModelSet) -> None:
        text = _render(samples, "Samples.Alpha")
        positions = [
            text.index(fragment)
            for fragment in (
                "static partial void CopyFromTransform_Value(ref int value);",
                "static partial void InitTransform_Value(ref int value);",
                "static partial void UpdateFromTransform_Value(ref int value);",
                "partial void AfterInit(Alpha source);",
                "public Alpha(Alpha source)",
                "partial void BeforeCopyFrom(Alpha source);",
                "public void CopyFrom(Alpha source)",
                "partial void BeforeUpdateFrom(Alpha source, ref int changeCount);",
                "public int UpdateFrom(Alpha source)",
            )
        ]
        assert positions == sorted(positions)


class TestMethods:
    def test_constructor(self, samples: ModelSet) -> None:
        assert (
            "    public Alpha(Alpha source)\n"
            "    {\n"
            "        if (ReferenceEquals(null, source)) "
            "throw new ArgumentNullException(nameof(source));\n"
            "        var source_Value = source.Value;\n"
            "        InitTransform_Value(ref source_Value);\n"
            "        this.Value = source_Value;\n"
            "        AfterInit(source);\n"
            "    }\n"
        ) in _render(samples, "Samples.Alpha")

    def test_copy(self, samples: ModelSet) -> None:
        assert (
            "    public void CopyFrom(Alpha source)\n"
            "    {\n"
            "        if (ReferenceEquals(null, source)) return;\n"
            "        if (ReferenceEquals(this, source)) return;\n"
            "        BeforeCopyFrom(source);\n"
            "        var source_Value = source.Value;\n"
            "        CopyFromTransform_Value(ref source_Value);\n"
            "        this.Value = source_Value;\n"
            "        AfterCopyFrom(source);\n"
            "    }\n"
        ) in _render(samples, "Samples.Alpha")

    def test_update(self, samples: ModelSet) -> None:
        assert (
            "    public int UpdateFrom(Alpha source)\n"
            "    {\n"
            "        if (ReferenceEquals(null, source)) return 0;\n"
            "        if (ReferenceEquals(this, source)) return 0;\n"
            "        var changeCount = 0;\n"
            "        BeforeUpdateFrom(source, ref changeCount);\n"
            "        var this_Value = this.Value;\n"
            "        var source_Value = source.Value;\n"
            "        UpdateFromTransform_Value(ref source_Value);\n"
            "        if (!this_Value.Equals(source_Value))\n"
            "        {\n"
            "            this.Value = source_Value;\n"
            "            changeCount++;\n"
            "        }\n"
            "        AfterUpdateFrom(source, ref changeCount);\n"
            "        return changeCount;\n"
            "    }\n"
        ) in _render(samples, "Samples.Alpha")

    def test_non_nullable_reference(self, samples: ModelSet) -> None:
        text = _render(samples, "Samples.Bravo")
        assert (
            "        if (!ReferenceEquals(null, source_NonNullableString)) "
            "this.NonNullableString = source_NonNullableString;\n"
        ) in text
        assert (
            "        if (!ReferenceEquals(null, source_NonNullableString) "
            "&& !ReferenceEquals(this_NonNullableString, source_NonNullableString) "
            "&& (ReferenceEquals(null, this_NonNullableString) "
            "|| !this_NonNullableString.Equals(source_NonNullableString)))\n"
        ) in text

    def test_nullable_reference(self, samples: ModelSet) -> None:
        text = _render(samples, "Samples.Bravo")
        assert "        this.NullableString = source_NullableString;\n" in text
        assert (
            "        if (!ReferenceEquals(this_NullableString, source_NullableString) "
            "&& (ReferenceEquals(null, this_NullableString) "
            "|| !this_NullableString.Equals(source_NullableString)))\n"
        ) in text
        assert "IgnoredProperty" not in text

    def test_copy_to_struct(self, samples: ModelSet) -> None:
        text = _render(samples, "Samples.Lima")
        assert "    partial void BeforeCopyTo(ref Samples.Lima3 target);\n" in text
        assert (
            "    public void CopyTo(ref Samples.Lima3 target)\n"
            "    {\n"
            "        BeforeCopyTo(ref target);\n"
            "        var this_Value = this.Value;\n"
            "        CopyToTransform_Value(ref this_Value);\n"
            "        target.Value = this_Value;\n"
            "        AfterCopyTo(ref target);\n"
            "    }\n"
        ) in text
        assert "ReadOnlyValue" not in text

    def test_update_target(self, samples: ModelSet) -> None:
        text = _render(samples, "Samples.Lima")
        assert (
            "    public int UpdateTarget(Samples.Lima2 target)\n"
            "    {\n"
            "        if (ReferenceEquals(null, target)) return 0;\n"
            "        if (ReferenceEquals(this, target)) return 0;\n"
            "        var changeCount = 0;\n"
            "        BeforeUpdateTarget(target, ref changeCount);\n"
            "        var target_Value = target.Value;\n"
            "        var this_Value = this.Value;\n"
            "        UpdateTargetTransform_Value(ref this_Value);\n"
            "        if (!target_Value.Equals(this_Value))\n"
        ) in text


class TestPassthrough:
    def test_record(self, samples: ModelSet) -> None:
        text = _render(samples, "Samples.Foxtrot")
        assert (
            "    static string PassthroughTransform_Name(Samples.Foxtrot2 source)\n"
            "    {\n"
            "        if (ReferenceEquals(null, source)) "
            "throw new ArgumentNullException(nameof(source));\n"
            "        var value = source.Name;\n"
            "        InitTransform_Name(ref value);\n"
            "        return value;\n"
            "    }\n"
        ) in text
        assert (
            "    public Foxtrot(Samples.Foxtrot2 source) : this("
            "PassthroughTransform_Name(source), PassthroughTransform_Age(source))\n"
            "    {\n"
            "        if (ReferenceEquals(null, source)) "
            "throw new ArgumentNullException(nameof(source));\n"
            "        var source_BirthYear = source.BirthYear;\n"
        ) in text

    def test_struct_source(self, samples: ModelSet) -> None:
        text = _render(samples, "Samples.Kilo")
        assert (
            "    static float PassthroughTransform_X(Samples.Kilo2 source)\n"
            "    {\n"
            "        var value = source.X;\n"
        ) in text
        assert "ArgumentNullException" not in text


def _parse(text: str) -> ModelSet:
    return parse_models([(text, "inline.copygen.toml")])


class TestMemberNames:
    def test_private_base_member_is_not_copied(self) -> None:
        models = _parse(
            """
            namespace = "Samples"
            [[type]]
            name = "Base"
            [[type.member]]
            name = "Shown"
            type = "int"
            [[type.member]]
            name = "_secret"
            type = "int"
            kind = "field"
            access = "private"
            [[type]]
            name = "Derived"
            base = "Base"
            copy_from = ["Derived"]
            """,
        )
        text = _render(models, "Samples.Derived")
        assert "        this.Shown = source_Shown;\n" in text
        assert "_secret" not in text

    def test_case_variants_render_alike(self) -> None:
        texts: list[str] = []
        for first, second in [("Value", "value"), ("value", "Value")]:
            models = _parse(
                '[[type]]\nname = "Twins"\ncopy_from = ["Twins"]\n'
                f'[[type.member]]\nname = "{first}"\ntype = "int"\n'
                f'[[type.member]]\nname = "{second}"\ntype = "int"\n',
            )
            texts.append(_render(models, "Twins"))
        assert texts[0] == texts[1]
        assert "        this.Value = source_Value;\n" in texts[0]
        assert "source_value" not in texts[0]

    def test_locals_follow_written_member(self) -> None:
        models = _parse(
            """
            namespace = "Samples"
            [[type]]
            name = "Echo"
            copy_from = ["EchoDto"]
            [[type.member]]
            name = "a"
            type = "int"
            [[type.member]]
            name = "_a"
            type = "int"
            [[type]]
            name = "EchoDto"
            [[type.member]]
            name = "_a"
            type = "int"
            kind = "field"
            """,
        )
        text = _render(models, "Samples.Echo")
        assert text.count("        var source_a = source._a;\n") == 1
        assert text.count("        var source__a = source._a;\n") == 1
        assert "        this.a = source_a;\n" in text
        assert "        this._a = source__a;\n" in text
