"""Tests for the plugin executor."""

from unittest.mock import AsyncMock

import pytest

from skillbox.plugins.detector import ChatContext
from skillbox.plugins.errors import PluginRuntimeError
from skillbox.plugins.executor import PluginCallRequest, PluginExecutor
from skillbox.plugins.http import PluginHttpClient


@pytest.fixture
def http():
    client = PluginHttpClient(default_timeout=5)
    client.post_json = AsyncMock(return_value={"temp": 21})
    client.get_json = AsyncMock(return_value={"ok": True})
    return client


@pytest.fixture
def executor(registry, http):
    return PluginExecutor(registry, http_client=http)


def weather_call(**overrides) -> PluginCallRequest:
    fields = {
        "plugin_id": "weather",
        "function_name": "get",
        "user_id": "alice",
        "parameters": {"city": "Berlin"},
    }
    fields.update(overrides)
    return PluginCallRequest(**fields)


def statuses(result):
    return [(e.type, e.data.status) for e in result.events]


class TestExecutePlugin:

    async def test_successful_api_call(self, executor, http):
        result = await executor.execute_plugin(weather_call())

        assert result.success is True
        assert result.data == {"temp": 21}
        assert result.error is None
        assert result.execution_time_ms >= 0
        assert result.metadata["plugin_id"] == "weather"
        http.post_json.assert_awaited_once_with(
            "https://weather.example.com/v1/current",
            {"city": "Berlin"},
            headers={"Content-Type": "application/json"},
            timeout=5.0,
        )

    async def test_event_order(self, executor):
        result = await executor.execute_plugin(weather_call())

        assert statuses(result) == [
            ("status", "pending"),
            ("status", "in_progress"),
            ("status", "in_progress"),
            ("status", "completed"),
        ]
        assert result.events[-1].data.done is True
        assert result.events[2].data.description == "Making API call to weather.example.com..."

    async def test_unknown_plugin(self, executor):
        result = await executor.execute_plugin(weather_call(plugin_id="missing"))

        assert result.success is False
        assert result.error == "Plugin not found or inactive: missing"
        assert statuses(result) == [("status", "pending"), ("error", "error")]
        assert result.events[-1].data.description == "Plugin execution failed: Plugin not found or inactive: missing"

    async def test_inactive_plugin(self, executor, registry):
        await registry.set_active("weather", False)
        result = await executor.execute_plugin(weather_call())

        assert result.success is False
        assert result.error == "Plugin not found or inactive: weather"

    async def test_unknown_function(self, executor):
        result = await executor.execute_plugin(weather_call(function_name="forecast"))
        assert result.error == "Function 'forecast' not found in plugin 'weather'"

    async def test_invalid_parameters_never_reach_runtime(self, executor, http):
        result = await executor.execute_plugin(weather_call(parameters={"units": "kelvin"}))

        assert result.success is False
        assert "Required parameter 'city' is missing" in result.error
        assert "Parameter 'units' must be one of: metric, imperial" in result.error
        http.post_json.assert_not_awaited()

    async def test_runtime_error_becomes_result(self, executor, http):
        http.post_json.side_effect = PluginRuntimeError("Request failed with status code 500")

        result = await executor.execute_plugin(weather_call())

        assert result.success is False
        assert result.error == "Request failed with status code 500"
        assert result.events[-1].type == "error"

    async def test_unsupported_runtime(self, executor, registry):
        await registry.create_plugin({
            "name": "legacy",
            "display_name": "Legacy",
            "plugin_type": "custom",
            "runtime_type": "nodejs",
            "manifest": {
                "runtime": "nodejs",
                "functions": [{"name": "run", "description": "Run", "parameters": {}}],
            },
        })
        legacy = await registry.find_by_name("legacy")

        result = await executor.execute_plugin(weather_call(plugin_id=legacy.id, function_name="run", parameters={}))

        assert result.success is False
        assert result.error == "Unsupported runtime type: nodejs"

    async def test_event_emitter_receives_every_event(self, executor):
        received = []

        async def sink(event):
            received.append(event)

        result = await executor.execute_plugin(weather_call(event_emitter=sink))
        assert received == result.events

    async def test_failing_event_emitter_does_not_fail_execution(self, executor):
        sink = AsyncMock(side_effect=RuntimeError("socket closed"))

        result = await executor.execute_plugin(weather_call(event_emitter=sink))

        assert result.success is True
        assert sink.await_count == len(result.events)


class TestConfiguration:

    async def test_schema_default_fills_endpoint(self, executor, http):
        http.post_json.return_value = {"images": [{"url": "https://img.test/1.png", "width": 512, "height": 512}]}

        result = await executor.execute_plugin(PluginCallRequest(
            plugin_id="painter", function_name="generate", user_id="alice", parameters={"prompt": "a fox"},
        ))

        assert result.success is True
        assert http.post_json.await_args.args[0] == "https://fal.run/fal-ai/flux/dev"
        assert result.data["metadata"] == {"generated_images": 1, "count": 1, "total_pixels": 262144}
        messages = [e.data.content for e in result.events if e.type == "message"]
        assert messages == ["![Generated Image](https://img.test/1.png)"]

    async def test_user_config_overrides_global(self, executor, registry, http):
        await registry.update_config("painter", {"api_key": "global-key", "model_name": "flux/schnell"})
        await registry.update_config("painter", {"api_key": "alice-key"}, user_id="alice")

        await executor.execute_plugin(PluginCallRequest(
            plugin_id="painter", function_name="generate", user_id="alice", parameters={"prompt": "a fox"},
        ))

        call = http.post_json.await_args
        assert call.args[0] == "https://fal.run/fal-ai/flux/schnell"
        assert call.kwargs["headers"]["Authorization"] == "Key alice-key"

    async def test_config_timeout_is_used(self, executor, registry, http):
        await registry.update_config("weather", {"timeout": 60})

        await executor.execute_plugin(weather_call())

        assert http.post_json.await_args.kwargs["timeout"] == 60.0


class TestExecuteFunction:

    async def test_runs_script_plugin_with_chat_context(self, executor):
        result = await executor.execute_function(
            "text_tools",
            "word_count",
            {"text": "hello big world"},
            ChatContext(user_id="alice", assistant_id="writer"),
        )

        assert result.success is True
        assert result.data == {"success": True, "words": 3, "characters": 15}
