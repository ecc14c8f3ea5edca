from .logger import setup_logging
from .text import first_words, normalize_whitespace, truncate

__all__ = ["setup_logging", "truncate", "normalize_whitespace", "first_words"]
