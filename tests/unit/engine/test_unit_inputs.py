# tests/unit/engine/test_unit_inputs.py — v1
"""Tests for engine/inputs.py — resolution order, coercion and rendering."""

from __future__ import annotations

import pytest

from helpers import make_phase
from phasekit.cache.json_store import JsonStateStore
from phasekit.core.errors import InputResolutionError
from phasekit.core.models import PhaseInput, PhaseStateRecord
from phasekit.engine.inputs import (
    InputResolver,
    coerce_value,
    instruction_fingerprint,
    overrides_for,
    placeholders,
    render_instruction,
)


@pytest.fixture
def store(tmp_path):
    return JsonStateStore(tmp_path / "state")


class TestCoerceValue:
    @pytest.mark.parametrize(
        ("type_", "raw", "expected"),
        [
            ("string", "auth", "auth"),
            ("integer", "3", 3),
            ("number", "2.5", 2.5),
            ("boolean", "true", True),
            ("boolean", "no", False),
            ("path", "src/app", "src/app"),
            ("json", '{"a": [1, 2]}', {"a": [1, 2]}),
            ("json", {"already": "parsed"}, {"already": "parsed"}),
        ],
    )
    def test_valid(self, type_, raw, expected):
        assert coerce_value(PhaseInput(name="x", type=type_), raw) == expected

    @pytest.mark.parametrize(
        ("type_", "raw"), [("integer", "three"), ("boolean", "maybe"), ("json", "{bad")]
    )
    def test_invalid(self, type_, raw):
        with pytest.raises(ValueError, match=f"expected {type_}"):
            coerce_value(PhaseInput(name="x", type=type_), raw)


class TestOverridesFor:
    def test_qualified_wins(self):
        overrides = {"module": "core", "P01.module": "auth", "P02.module": "billing"}
        assert overrides_for("P01", overrides) == {"module": "auth"}
        assert overrides_for("P03", overrides) == {"module": "core"}


class TestRendering:
    def test_placeholders_in_order(self):
        assert placeholders("{{ b }} {{a}} {{ b }} {{ c.d }}") == ["b", "a", "c.d"]

    def test_render_values(self):
        text = render_instruction(
            "{{ name }}/{{ n }}/{{ flag }}/{{ cfg }}/{{ other }}",
            {"name": "auth", "n": 2, "flag": False, "cfg": {"b": 1, "a": 2}},
        )
        assert text == 'auth/2/false/{"a": 2, "b": 1}/{{ other }}'

    def test_fingerprint_changes_with_inputs(self, input_phase):
        a = instruction_fingerprint(input_phase, "x", {"module": "auth"})
        b = instruction_fingerprint(input_phase, "x", {"module": "core"})
        assert a != b
        assert a == instruction_fingerprint(input_phase, "x", {"module": "auth"})

    def test_fingerprint_changes_with_definition(self, input_phase):
        changed = input_phase.model_copy(update={"produces": ("src/x.py",)})
        assert instruction_fingerprint(input_phase, "x", {}) != instruction_fingerprint(
            changed, "x", {}
        )


class TestInputResolver:
    @pytest.mark.asyncio
    async def test_override_and_default(self, store, input_phase):
        resolved = await InputResolver(store).resolve(
            input_phase, "web", "1.0.0", overrides={"module": "auth"}
        )
        assert resolved == {"module": "auth", "count": 2}

    @pytest.mark.asyncio
    async def test_override_coerced(self, store, input_phase):
        resolved = await InputResolver(store).resolve(
            input_phase, "web", "1.0.0", overrides={"module": "auth", "count": "5"}
        )
        assert resolved["count"] == 5

    @pytest.mark.asyncio
    async def test_cache_then_fallback(self, store, input_phase):
        await store.put(
            PhaseStateRecord(series="web", version="1.0.0", phase_id="P01", inputs={"module": "old"})
        )
        resolver = InputResolver(store)
        assert (await resolver.resolve(input_phase, "web", "1.0.0"))["module"] == "old"
        migrated = await resolver.resolve(
            input_phase, "web", "2.0.0", fallback_versions=("1.0.0",)
        )
        assert migrated["module"] == "old"
        with pytest.raises(InputResolutionError, match="module"):
            await resolver.resolve(input_phase, "web", "2.0.0")

    @pytest.mark.asyncio
    async def test_cache_beats_default(self, store, input_phase):
        await store.put(
            PhaseStateRecord(
                series="web", version="1.0.0", phase_id="P01", inputs={"module": "a", "count": 9}
            )
        )
        resolved = await InputResolver(store).resolve(input_phase, "web", "1.0.0")
        assert resolved["count"] == 9

    @pytest.mark.asyncio
    async def test_prompt_only_when_interactive(self, store, input_phase):
        asked = []

        def prompter(phase_id, spec):
            asked.append((phase_id, spec.name))
            return "prompted"

        resolver = InputResolver(store, prompter=prompter)
        with pytest.raises(InputResolutionError):
            await resolver.resolve(input_phase, "web", "1.0.0")
        resolved = await resolver.resolve(input_phase, "web", "1.0.0", interactive=True)
        assert resolved["module"] == "prompted"
        assert asked == [("P01", "module")]

    @pytest.mark.asyncio
    async def test_empty_prompt_answer_unresolved(self, store, input_phase):
        resolver = InputResolver(store, prompter=lambda phase_id, spec: "")
        with pytest.raises(InputResolutionError):
            await resolver.resolve(input_phase, "web", "1.0.0", interactive=True)

    @pytest.mark.asyncio
    async def test_non_strict_omits_missing(self, store, input_phase):
        resolved = await InputResolver(store).resolve(input_phase, "web", "1.0.0", strict=False)
        assert resolved == {"count": 2}

    @pytest.mark.asyncio
    async def test_bad_value(self, store, input_phase):
        with pytest.raises(InputResolutionError, match="expected integer"):
            await InputResolver(store).resolve(
                input_phase, "web", "1.0.0", overrides={"module": "a", "count": "lots"}
            )

    @pytest.mark.asyncio
    async def test_optional_without_default(self, store):
        phase = make_phase("P02", inputs=(PhaseInput(name="note", required=False),))
        assert await InputResolver(store).resolve(phase, "web", "1.0.0") == {}
