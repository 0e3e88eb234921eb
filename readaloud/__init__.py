"""
readaloud - read documents aloud with sentence highlighting.
"""

__version__ = "1.0.0"
