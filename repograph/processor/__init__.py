"""
Structural extraction: comment normalization, node identity and the
per-language extractors.
"""

from .extractor_registry import get_extractor, get_language
from .identity import generate_file_id, generate_id
from .normalizer import line_of, strip_comments

__all__ = [
    'get_extractor',
    'get_language',
    'generate_file_id',
    'generate_id',
    'line_of',
    'strip_comments',
]
