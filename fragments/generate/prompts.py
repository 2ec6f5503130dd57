# System prompt assembly from the template registry.
# For "auto" every template is listed so the model picks one itself.

from typing import Dict

from fragments.registry.templates import Template, TemplateRegistry

BASE_INSTRUCTIONS = """\
You are a skilled software engineer.
You do not make mistakes.
Generate a fragment.
You can install additional dependencies.
Do not touch project dependencies files like package.json, package-lock.json, requirements.txt, etc.
Do not wrap code in backticks.
Always break the lines correctly.
You can use one of the following templates:
"""


def templates_to_prompt(templates: Dict[str, Template]) -> str:
    lines = []
    for index, (template_id, t) in enumerate(templates.items(), start=1):
        lines.append(
            f'{index}. {template_id}: "{t.instructions}". '
            f"File: {t.file or 'none'}. "
            f"Dependencies installed: {', '.join(t.lib)}. "
            f"Port: {t.port or 'none'}."
        )
    return "\n".join(lines)


def to_prompt(template_id: str, registry: TemplateRegistry) -> str:
    """Build the system prompt for `template_id` ("auto" lists all templates)."""
    return BASE_INSTRUCTIONS + templates_to_prompt(registry.select(template_id))
