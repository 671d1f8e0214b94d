"""Tests for chat message processing."""

import asyncio
import re
from unittest.mock import AsyncMock

import pytest

from skillbox.plugins.detector import FunctionCall
from skillbox.plugins.errors import PluginRuntimeError
from skillbox.plugins.executor import PluginExecutionResult
from skillbox.plugins.integration import (
    ChatMessage,
    ChatPluginIntegration,
    PluginExecutionSummary,
    build_replacement,
    summarize_result,
)


@pytest.fixture
def http(loaded_services):
    http = loaded_services.http
    http.post_json = AsyncMock(return_value={"temp": 21})
    return http


@pytest.fixture
def integration(loaded_services, http):
    return loaded_services.integration


def message(content: str, **fields) -> ChatMessage:
    return ChatMessage(id="msg-1", content=content, user_id="alice", **fields)


def make_call(start, end, name="weather", function="get") -> FunctionCall:
    return FunctionCall(
        plugin_id=name,
        plugin_name=name,
        function_name=function,
        original_text="x",
        start_index=start,
        end_index=end,
    )


class TestProcessMessage:

    async def test_message_without_calls_is_unchanged(self, integration, http):
        original = message("Hello, how are you?")

        response = await integration.process_message(original)

        assert response.function_calls == []
        assert response.plugin_results == []
        assert response.processed_message.content == "Hello, how are you?"
        assert response.processed_message.metadata is None
        data = response.to_dict()
        assert set(data) == {"originalMessage", "processedMessage", "functionCalls", "pluginResults", "events"}
        http.post_json.assert_not_awaited()

    async def test_successful_call_is_replaced_in_text(self, integration):
        response = await integration.process_message(
            message("What's the weather? use weather.get(city=Berlin) thanks")
        )

        processed = response.processed_message
        assert re.fullmatch(r"What's the weather\? ✅ \*\*get\*\* completed \(\d+ms\) thanks", processed.content)
        assert processed.metadata == {
            "hasPluginResults": True,
            "pluginExecutions": 1,
            "successfulExecutions": 1,
        }
        assert response.original_message.content == "What's the weather? use weather.get(city=Berlin) thanks"
        assert response.plugin_results[0].success is True
        assert response.plugin_results[0].result_summary == "Function executed successfully"

    async def test_failed_call_is_reported_inline(self, integration, http):
        http.post_json.side_effect = PluginRuntimeError("Request failed with status code 404")

        response = await integration.process_message(message("use weather.get(city=Atlantis)"))

        assert response.processed_message.content == "❌ **weather** failed: Request failed with status code 404"
        assert response.plugin_results[0].result_summary is None
        assert response.processed_message.metadata["successfulExecutions"] == 0

    async def test_calls_settle_independently(self, integration, http):
        async def post_json(url, payload, headers=None, timeout=None):
            if payload["city"] == "Nowhere":
                raise PluginRuntimeError("unknown city")
            return {"temp": 21}

        http.post_json.side_effect = post_json

        response = await integration.process_message(
            message("use weather.get(city=Nowhere) and use weather.get(city=Berlin)")
        )

        assert [r.success for r in response.plugin_results] == [False, True]
        assert response.processed_message.content.startswith("❌ **weather** failed: unknown city and ✅ **get**")
        assert response.processed_message.metadata["pluginExecutions"] == 2
        assert response.processed_message.metadata["successfulExecutions"] == 1

    @pytest.mark.parametrize("fail_delay, ok_delay", [(0, 0.02), (0.02, 0)])
    async def test_rejected_call_does_not_affect_the_other(self, integration, fail_delay, ok_delay):
        outcomes = [
            (fail_delay, RuntimeError("first down")),
            (ok_delay, PluginExecutionResult(success=True, data={"temp": 21})),
        ]

        async def execute_plugin(request):
            delay, outcome = outcomes.pop(0)
            await asyncio.sleep(delay)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        integration.executor.execute_plugin = AsyncMock(side_effect=execute_plugin)

        response = await integration.process_message(
            message("use weather.get(city=Nowhere) and use weather.get(city=Berlin)")
        )

        first, second = response.plugin_results
        assert (first.success, first.error, first.execution_time_ms) == (False, "first down", 0)
        assert second.success is True
        assert second.result_summary == "Function executed successfully"
        assert re.fullmatch(
            r"❌ \*\*weather\*\* failed: first down and ✅ \*\*get\*\* completed \(\d+ms\)",
            response.processed_message.content,
        )

    async def test_events_of_concurrent_calls_are_tagged(self, integration, http):
        async def post_json(url, payload, headers=None, timeout=None):
            if payload["city"] == "Berlin":
                await asyncio.sleep(0.01)
                return {"temp": 21}
            raise PluginRuntimeError("unknown city")

        http.post_json.side_effect = post_json
        received = []

        async def on_event(event):
            received.append(event)

        response = await integration.process_message(
            message("use weather.get(city=Nowhere) and use weather.get(city=Berlin)"), on_event
        )

        assert received == response.events
        for event in response.events:
            assert event.data.plugin_id == "weather"
            assert event.data.function_name == "get"

        by_call = {0: [], 1: []}
        for event in response.events:
            by_call[event.data.call_index].append(event)
        assert by_call[0][0].data.status == "pending"
        assert by_call[0][-1].type == "error"
        assert by_call[1][0].data.status == "pending"
        assert by_call[1][-1].data.status == "completed"
        assert response.to_dict()["events"][0]["data"]["call_index"] in (0, 1)

    async def test_image_result_is_embedded(self, integration, http):
        http.post_json.return_value = {"images": [{"url": "https://img.test/fox.png"}]}

        response = await integration.process_message(message("Generate an image of a red fox in snow"))

        assert "![Generated Image](https://img.test/fox.png)" in response.processed_message.content
        assert any(e.type == "message" for e in response.events)

    async def test_events_reach_callback_in_order(self, integration):
        received = []

        async def on_event(event):
            received.append(event)

        response = await integration.process_message(message("use weather.get(city=Berlin)"), on_event)

        assert received == response.events
        assert [e.data.status for e in received] == ["pending", "in_progress", "in_progress", "completed"]

    async def test_executor_exception_becomes_failed_summary(self, integration):
        integration.executor.execute_plugin = AsyncMock(side_effect=RuntimeError("boom"))

        response = await integration.process_message(message("use weather.get(city=Berlin)"))

        result = response.plugin_results[0]
        assert result.success is False
        assert result.error == "boom"
        assert result.execution_time_ms == 0

    async def test_detector_failure_emits_error_event(self, integration):
        integration.detector.detect_function_calls = AsyncMock(side_effect=RuntimeError("detector down"))
        received = []

        async def on_event(event):
            received.append(event)

        original = message("use weather.get(city=Berlin)")
        response = await integration.process_message(original, on_event)

        assert response.processed_message.content == original.content
        assert len(received) == 1
        assert received[0].type == "error"
        assert received[0].data.description == "Failed to process plugin functions"
        assert received[0].data.error == "detector down"

    async def test_preview_does_not_execute(self, integration, http):
        original = message("use weather.get(city=Berlin)")

        calls = await integration.preview_function_calls(original)

        assert len(calls) == 1
        assert await integration.has_plugin_functions(original) is True
        assert await integration.has_plugin_functions(message("nothing here")) is False
        http.post_json.assert_not_awaited()

    async def test_assistant_scopes_available_plugins(self, integration, loaded_services):
        await loaded_services.registry.assign_plugin("writer", "painter")

        response = await integration.process_message(
            message("use weather.get(city=Berlin)", assistant_id="writer")
        )

        assert response.function_calls == []


class TestProcessedMessage:

    def test_spans_are_replaced_back_to_front(self):
        original = message("A use x() B use y() C")
        calls = [make_call(2, 9, "x"), make_call(12, 19, "y")]
        results = [
            PluginExecutionSummary(
                plugin_id=c.plugin_id, plugin_name=c.plugin_name, function_name="get",
                success=True, execution_time_ms=1, result_summary=summary,
            )
            for c, summary in zip(calls, ["ONE", "LONGER TWO"])
        ]

        processed = ChatPluginIntegration.build_processed_message(original, calls, results)

        assert processed.content == "A ONE B LONGER TWO C"
        assert original.content == "A use x() B use y() C"

    def test_existing_metadata_is_kept(self):
        original = message("use x()", metadata={"source": "web"})
        call = make_call(0, 7, "x")
        result = PluginExecutionSummary(
            plugin_id="x", plugin_name="x", function_name="get", success=True, execution_time_ms=3,
        )

        processed = ChatPluginIntegration.build_processed_message(original, [call], [result])

        assert processed.metadata["source"] == "web"
        assert processed.metadata["hasPluginResults"] is True


class TestSummaries:

    @pytest.mark.parametrize("data, expected", [
        (None, "No result data"),
        ({}, "No result data"),
        ("done", "Function executed successfully"),
        ({"images": []}, "Generated 0 image(s)"),
        ({"audio_url": "https://a.test/x.mp3"}, "Generated audio file"),
        ({"video_url": "https://v.test/x.mp4"}, "Generated video file"),
        ({"workflow_result": {"id": 1}}, "Workflow completed with result"),
        ({"success": True}, "Operation completed successfully"),
        ({"success": False}, "Operation failed"),
        ({"temp": 21}, "Function executed successfully"),
    ])
    def test_summarize_result(self, data, expected):
        assert summarize_result(data) == expected

    def test_image_details(self):
        summary = summarize_result({
            "image_url": "https://img.test/a.png",
            "metadata": {"width": 512, "height": 768, "seed": 42, "model": "flux"},
        })

        assert "📏 Größe: 512×768" in summary
        assert "🎲 Seed: 42" in summary
        assert summary.endswith("![Generated Image](https://img.test/a.png)")

    def test_image_without_metadata(self):
        summary = summarize_result({"data": {"image_url": "https://img.test/a.png"}})
        assert summary == "Bild wurde erfolgreich generiert.\n![Generated Image](https://img.test/a.png)"

    def test_category_replacement_for_generic_summary(self):
        call = make_call(0, 5, "flux", "image_gen")
        result = PluginExecutionSummary(
            plugin_id="flux", plugin_name="flux", function_name="image_gen", success=True,
            execution_time_ms=12, result_summary="Function executed successfully",
        )
        assert build_replacement(call, result) == "✅ **Image generated** (12ms)"
