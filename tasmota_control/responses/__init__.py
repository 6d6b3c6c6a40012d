"""
Response templates for the control host.
"""

from .templates import ResponseTemplates, get_templates

__all__ = [
    "ResponseTemplates",
    "get_templates",
]
