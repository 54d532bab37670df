"""xgrep - structural grep for XML documents"""

from xgrep.__version__ import __version__


__all__ = ['__version__']
