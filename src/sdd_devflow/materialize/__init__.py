"""Materialize domain: render the template corpus into a project."""

from sdd_devflow.materialize.files import MaterializeResult, get_template_dir
from sdd_devflow.materialize.generator import generate
from sdd_devflow.materialize.init_generator import generate_init
from sdd_devflow.materialize.templating import Document, TemplateError, render_text

__all__ = [
    "Document",
    "MaterializeResult",
    "TemplateError",
    "generate",
    "generate_init",
    "get_template_dir",
    "render_text",
]
