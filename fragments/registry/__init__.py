# Static lookups supplied by configuration: models and templates.

from .models import ModelConfig, ModelDescriptor, ModelRegistry, ProviderId
from .templates import AUTO_TEMPLATE, Template, TemplateRegistry

__all__ = [
    "ModelConfig",
    "ModelDescriptor",
    "ModelRegistry",
    "ProviderId",
    "AUTO_TEMPLATE",
    "Template",
    "TemplateRegistry",
]
