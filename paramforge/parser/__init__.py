"""Annotation parser — turn annotated design source into a parameter schema."""

from paramforge.parser.libraries import detect_libraries
from paramforge.parser.parser import AnnotationParser, SourceDecodeError, parse_source, slugify

__all__ = ["AnnotationParser", "SourceDecodeError", "detect_libraries", "parse_source", "slugify"]
