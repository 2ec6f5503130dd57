# Static template registry: id -> prompt fragment.

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

DATA_DIR = Path(__file__).resolve().parent / "data"

# the template id meaning "let the model pick"
AUTO_TEMPLATE = "auto"


class Template(BaseModel):
    name: str
    lib: List[str] = Field(default_factory=list)
    file: Optional[str] = None
    instructions: str
    port: Optional[int] = None


class TemplateRegistry:
    def __init__(self, templates: Dict[str, Template]):
        self._templates = dict(templates)

    @classmethod
    def from_yaml(cls, path: Optional[str] = None) -> "TemplateRegistry":
        path = path or os.fspath(DATA_DIR / "templates.yaml")
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        items = raw.get("templates", {})
        return cls({k: Template.model_validate(v) for k, v in items.items()})

    def __contains__(self, template_id: str) -> bool:
        return template_id == AUTO_TEMPLATE or template_id in self._templates

    def items(self):
        return self._templates.items()

    def select(self, template_id: str) -> Dict[str, Template]:
        """Templates a prompt should offer: all of them for "auto", else one."""
        if template_id == AUTO_TEMPLATE:
            return dict(self._templates)
        if template_id not in self._templates:
            raise KeyError(f"Unknown template: {template_id}")
        return {template_id: self._templates[template_id]}
