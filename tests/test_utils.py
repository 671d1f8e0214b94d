"""Tests for text repair and SSE formatting helpers."""

import json

from skillbox.utils import format_sse_message, repair_mojibake


class TestRepairMojibake:

    def test_repairs_utf8_read_as_cp1252(self):
        assert repair_mojibake("zitronensÃ¤ure") == "zitronensäure"
        assert repair_mojibake("GrÃ¶ÃŸe") == "Größe"

    def test_clean_text_is_unchanged(self):
        assert repair_mojibake("zitronensäure") == "zitronensäure"
        assert repair_mojibake("") == ""

    def test_unrepairable_text_is_unchanged(self):
        assert repair_mojibake("Ã alone") == "Ã alone"


class TestFormatSseMessage:

    def test_dict_payload(self):
        message = format_sse_message("plugin_event", {"type": "status", "text": "Größe"})

        assert message["event"] == "plugin_event"
        assert json.loads(message["data"]) == {"type": "status", "text": "Größe"}
        assert "Größe" in message["data"]

    def test_string_payload_is_wrapped(self):
        message = format_sse_message("result", "done")
        assert json.loads(message["data"]) == {"content": "done"}
