"""p2 - Jinja2 template renderer for environment, JSON and YAML data.

Renders a single template or a directory tree of templates to stdout, files
or a tar archive.
"""

__version__ = "0.1.0"

# Configure logging for library use
import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Re-export main CLI entry point
from .cli import main

__all__ = ["main"]
