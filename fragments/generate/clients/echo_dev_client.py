# Dummy model client for local dev and testing without API calls.
# Streams a small, valid fragment that echoes the last user message.

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, List, Type

from pydantic import BaseModel

from ..types import ChatMessage, GenerationParams, Role
from .base import ModelClient


class EchoDevClient(ModelClient):
    def __init__(self, model: str = "echo-dev", chunk_size: int = 16, delay: float = 0.0):
        self.provider = "echo"
        self.model = model
        self.chunk_size = chunk_size
        self.delay = delay

    def render(self, messages: List[ChatMessage]) -> str:
        user_inputs = [m.text() for m in messages if m.role == Role.USER]
        prompt = user_inputs[-1] if user_inputs else "(no user input)"
        fragment = {
            "commentary": f"[ECHO RESPONSE] {prompt}",
            "template": "code-interpreter-v1",
            "title": "Echo",
            "description": "Echoes the last user message.",
            "additional_dependencies": [],
            "has_additional_dependencies": False,
            "install_dependencies_command": "",
            "port": None,
            "file_path": "script.py",
            "code": f"print({json.dumps(prompt)})",
        }
        return json.dumps(fragment)

    async def stream_text(
        self,
        system: str,
        messages: List[ChatMessage],
        schema: Type[BaseModel],
        params: GenerationParams,
    ) -> AsyncIterator[str]:
        text = self.render(messages)
        for i in range(0, len(text), self.chunk_size):
            if self.delay:
                await asyncio.sleep(self.delay)
            yield text[i:i + self.chunk_size]
