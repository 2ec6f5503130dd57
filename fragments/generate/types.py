# Shared types for the generation pipeline: request body, chat messages,
# the fragment output schema and the sampling parameters sent to providers.

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from fragments.registry.models import ModelConfig, ModelDescriptor


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Image given as URL, data URL or bare base64."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["image"] = "image"
    image: str
    mime_type: Optional[str] = Field(default=None, alias="mimeType")


class FilePart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["file"] = "file"
    data: str
    mime_type: str = Field(alias="mimeType")


ContentPart = Union[TextPart, ImagePart, FilePart]


class ChatMessage(BaseModel):
    """Single chat turn."""
    role: Role
    content: Union[str, List[ContentPart]]

    def text(self) -> str:
        """Concatenated text of the message, ignoring non-text parts."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text for p in self.content if p.type == "text")


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage] = Field(default_factory=list)
    user_id: Optional[str] = Field(default=None, alias="userID")
    team_id: Optional[str] = Field(default=None, alias="teamID")
    template: str = Field(min_length=1)
    model: ModelDescriptor
    config: ModelConfig = Field(default_factory=ModelConfig)


class Fragment(BaseModel):
    """Structured output every generation must conform to."""
    model_config = ConfigDict(extra="forbid")

    commentary: str = Field(
        description="Describe what you're about to do and the steps you want to take "
        "for generating the fragment in great detail."
    )
    template: str = Field(description="Name of the template used to generate the fragment.")
    title: str = Field(description="Short title of the fragment. Max 3 words.")
    description: str = Field(description="Short description of the fragment. Max 1 sentence.")
    additional_dependencies: List[str] = Field(
        description="Additional dependencies required by the fragment. "
        "Do not include dependencies that are already included in the template."
    )
    has_additional_dependencies: bool = Field(
        description="Detect if additional dependencies that are not included in the "
        "template are required by the fragment."
    )
    install_dependencies_command: str = Field(
        description="Command to install additional dependencies required by the fragment."
    )
    port: Optional[int] = Field(
        description="Port number used by the resulted fragment. Null when no ports are exposed."
    )
    file_path: str = Field(description="Relative path to the file, including the file name.")
    code: str = Field(description="Code generated by the fragment. Only runnable code is allowed.")


@dataclass
class GenerationParams:
    """Sampling parameters forwarded to the provider (None = provider default)."""
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    max_tokens: Optional[int] = None

    @classmethod
    def from_config(cls, config: ModelConfig) -> "GenerationParams":
        return cls(
            temperature=config.temperature,
            top_p=config.top_p,
            top_k=config.top_k,
            frequency_penalty=config.frequency_penalty,
            presence_penalty=config.presence_penalty,
            max_tokens=config.max_tokens,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}
