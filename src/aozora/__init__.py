from .core import convert, convert_file
from .formatter import AnnotationFormatError, FormatState, format_text
from .ruby import RubyToken, find_ruby_tokens, resegment, resegment_tokens
from .search import Candidate, InvalidBookError, book_url, narrow, narrow_all

__all__ = [
    "convert",
    "convert_file",
    "format_text",
    "FormatState",
    "AnnotationFormatError",
    "resegment",
    "resegment_tokens",
    "find_ruby_tokens",
    "RubyToken",
    "Candidate",
    "InvalidBookError",
    "book_url",
    "narrow",
    "narrow_all",
]
