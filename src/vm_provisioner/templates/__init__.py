"""
Shell script templates for provisioning plans.
"""

from .loader import TemplateLoader, render_script

__all__ = ["TemplateLoader", "render_script"]
