"""
Wagner impact package.

Composite (inner + outer - overlap) Wagner pressure and force on a plate
during the early stage of liquid impact. The __init__ stays lightweight so
that `import wagner_impact` and `wagner-impact --help` work without pulling
in the numerical core.
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("wagner-impact")
except PackageNotFoundError:  # during editable installs
    __version__ = "0.0.0"

__all__ = ["__version__"]
