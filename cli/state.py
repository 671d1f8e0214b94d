"""REPL state management."""

import time
from datetime import datetime, timezone
from typing import Optional

from skillbox.plugins.integration import ChatMessage


class REPLState:
    """REPL state management."""

    def __init__(self, user_id: str = "cli-debug", assistant_id: Optional[str] = None):
        self.user_id: str = user_id
        self.assistant_id: Optional[str] = assistant_id
        self.conversation_id: str = f"cli-{int(time.time())}"
        self.preview: bool = False  # detect only, do not execute
        self.message_count: int = 0

    def build_message(self, content: str) -> ChatMessage:
        """Build a ChatMessage for the current user and assistant.

        Args:
            content: Message text

        Returns:
            ChatMessage instance
        """
        self.message_count += 1
        return ChatMessage(
            id=f"{self.conversation_id}-{self.message_count}",
            content=content,
            role="user",
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=self.user_id,
            assistant_id=self.assistant_id,
            conversation_id=self.conversation_id,
            metadata={"source": "cli"},
        )
