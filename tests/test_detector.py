"""Tests for function call detection."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from skillbox.plugins.detector import (
    ChatContext,
    FunctionCall,
    FunctionCallDetector,
    ImageGenerationStrategy,
    parse_float,
    remove_overlapping_calls,
)

ALICE = ChatContext(user_id="alice")


@pytest.fixture
def detector(registry):
    return FunctionCallDetector(registry)


def make_call(start: int, end: int, plugin: str = "p") -> FunctionCall:
    return FunctionCall(
        plugin_id=plugin,
        plugin_name=plugin,
        function_name="f",
        original_text="x" * (end - start),
        start_index=start,
        end_index=end,
    )


class TestExplicitCalls:

    async def test_json_arguments_merge_over_defaults(self, detector):
        message = 'use weather.get({"city": "Berlin"})'
        calls = await detector.detect_function_calls(message, ALICE)

        assert len(calls) == 1
        call = calls[0]
        assert call.plugin_id == "weather"
        assert call.function_name == "get"
        assert call.parameters == {"units": "metric", "detailed": False, "city": "Berlin"}
        assert call.start_index == 0
        assert call.end_index == len(message)
        assert call.original_text == message

    async def test_key_value_arguments_are_converted(self, detector):
        calls = await detector.detect_function_calls(
            'call painter(prompt="a red fox", width=512)', ALICE
        )

        assert len(calls) == 1
        assert calls[0].function_name == "generate"
        assert calls[0].parameters == {"prompt": "a red fox", "width": 512}

    async def test_boolean_and_unknown_keys(self, detector):
        calls = await detector.detect_function_calls(
            "run weather.get(city=Paris, detailed=TRUE, bogus=1)", ALICE
        )

        assert calls[0].parameters == {"city": "Paris", "units": "metric", "detailed": True}

    async def test_malformed_json_falls_back_to_defaults(self, detector):
        calls = await detector.detect_function_calls("use weather.get({city: Berlin})", ALICE)

        assert len(calls) == 1
        assert calls[0].parameters == {"units": "metric", "detailed": False}

    async def test_empty_arguments_use_defaults(self, detector):
        calls = await detector.detect_function_calls("execute weather.get()", ALICE)
        assert calls[0].parameters == {"units": "metric", "detailed": False}

    async def test_verb_is_case_insensitive_and_display_name_matches(self, detector):
        calls = await detector.detect_function_calls("USE WEATHER.get(city=Rome)", ALICE)

        assert len(calls) == 1
        assert calls[0].plugin_name == "weather"

    async def test_unknown_plugin_or_function_is_ignored(self, detector):
        assert await detector.detect_function_calls("use nothing.get(city=Rome)", ALICE) == []
        assert await detector.detect_function_calls("use weather.forecast(city=Rome)", ALICE) == []

    async def test_multiple_calls_in_text_order(self, detector):
        message = "use weather.get(city=Berlin) and then call weather.get(city=Paris)"
        calls = await detector.detect_function_calls(message, ALICE)

        assert [c.parameters["city"] for c in calls] == ["Berlin", "Paris"]
        assert calls[0].end_index <= calls[1].start_index

    async def test_script_plugin_can_be_called(self, detector):
        calls = await detector.detect_function_calls('run text_tools.word_count(text="hello world")', ALICE)
        assert calls[0].parameters == {"text": "hello world"}

    async def test_camel_case_serialization(self, detector):
        calls = await detector.detect_function_calls("use weather.get(city=Rome)", ALICE)
        data = calls[0].model_dump(by_alias=True)

        assert data["pluginId"] == "weather"
        assert data["startIndex"] == 0
        assert "originalText" in data


class TestNumberParsing:

    def test_leading_number_is_used(self):
        assert parse_float("12.5abc") == 12.5
        assert parse_float("512") == 512
        assert isinstance(parse_float("512"), int)

    def test_no_number(self):
        assert parse_float("abc") is None

    async def test_unparseable_number_keeps_default(self, detector):
        calls = await detector.detect_function_calls("use painter(prompt=cat, width=wide)", ALICE)
        assert calls[0].parameters["width"] == 1024


class TestImageDetection:

    async def test_english_request(self, detector):
        message = "Generate an image of a sunset over mountains"
        calls = await detector.detect_function_calls(message, ALICE)

        assert len(calls) == 1
        assert calls[0].plugin_id == "painter"
        assert calls[0].function_name == "generate"
        assert calls[0].parameters == {"width": 1024, "prompt": "a sunset over mountains"}
        assert (calls[0].start_index, calls[0].end_index) == (0, len(message))

    async def test_german_request(self, detector):
        calls = await detector.detect_function_calls("Erstelle ein Bild von einem Hund am Strand", ALICE)

        assert len(calls) == 1
        assert calls[0].parameters["prompt"] == "einem Hund am Strand"

    async def test_short_prompt_is_ignored(self, detector):
        assert await detector.detect_function_calls("draw me cat", ALICE) == []

    async def test_no_image_plugin_available(self, detector):
        context = ChatContext(user_id="alice", available_plugin_ids=["weather"])
        assert await detector.detect_function_calls("draw me a mountain lake", context) == []

    async def test_plain_message_has_no_calls(self, detector):
        assert await detector.detect_function_calls("Hello, how are you today?", ALICE) == []

    async def test_automation_keywords_produce_no_calls(self, detector):
        assert await detector.detect_function_calls("please run workflow for the newsletter", ALICE) == []

    def test_plugin_without_matching_function(self):
        plugin = MagicMock()
        plugin.plugin_type = ImageGenerationStrategy.plugin_type
        plugin.manifest.functions = []

        assert ImageGenerationStrategy().detect("draw me a mountain lake", [plugin]) == []


class TestOverlapRemoval:

    def test_overlapping_call_is_dropped(self):
        calls = remove_overlapping_calls([make_call(5, 15, "b"), make_call(0, 10, "a"), make_call(15, 20, "c")])
        assert [c.plugin_id for c in calls] == ["a", "c"]

    def test_first_collected_wins_on_same_start(self):
        calls = remove_overlapping_calls([make_call(0, 10, "explicit"), make_call(0, 30, "natural")])
        assert [c.plugin_id for c in calls] == ["explicit"]

    def test_adjacent_calls_are_kept(self):
        assert len(remove_overlapping_calls([make_call(0, 5), make_call(5, 9)])) == 2


class TestAvailablePlugins:

    async def test_public_active_plugins_by_default(self, detector):
        plugins = await detector.get_available_plugins(ALICE)
        names = {p.name for p in plugins}

        assert "notes" not in names
        assert {"weather", "painter", "keywords", "text_tools"} == names

    async def test_explicit_ids_take_precedence(self, detector):
        context = ChatContext(user_id="alice", assistant_id="writer", available_plugin_ids=["notes", "missing"])
        plugins = await detector.get_available_plugins(context)
        assert [p.name for p in plugins] == ["notes"]

    async def test_inactive_plugins_are_excluded(self, detector, registry):
        await registry.set_active("weather", False)
        assert await detector.detect_function_calls("use weather.get(city=Rome)", ALICE) == []

    async def test_assistant_assignments(self, detector, registry):
        await registry.assign_plugin("writer", "notes", sort_order=2)
        await registry.assign_plugin("writer", "weather", sort_order=1)
        await registry.assign_plugin("writer", "painter", is_enabled=False)
        context = ChatContext(user_id="alice", assistant_id="writer")

        plugins = await detector.get_available_plugins(context)

        assert [p.name for p in plugins] == ["weather", "notes"]

    async def test_assistant_without_assignments_has_no_plugins(self, detector):
        context = ChatContext(user_id="alice", assistant_id="empty")
        assert await detector.detect_function_calls("use weather.get(city=Rome)", context) == []

    async def test_registry_failure_yields_no_calls(self):
        registry = MagicMock()
        registry.find_all = AsyncMock(side_effect=RuntimeError("database down"))
        detector = FunctionCallDetector(registry)

        assert await detector.detect_function_calls("use weather.get(city=Rome)", ALICE) == []

    async def test_assignment_failure_yields_empty_list(self):
        registry = MagicMock()
        registry.get_assistant_plugins = AsyncMock(side_effect=RuntimeError("database down"))
        detector = FunctionCallDetector(registry)

        context = ChatContext(user_id="alice", assistant_id="writer")
        assert await detector.get_available_plugins(context) == []

    async def test_is_plugin_function_available(self, detector):
        assert await detector.is_plugin_function_available("weather", "get", ALICE) is True
        assert await detector.is_plugin_function_available("weather", "forecast", ALICE) is False
        assert await detector.is_plugin_function_available("notes", "save", ALICE) is False
