"""
Word-to-PDF conversion service package.

Turns uploaded Word documents into paginated PDF artifacts. The web layer
lives in `docpdf_service.webapi`; the framework-agnostic pipeline lives in
`docpdf_service.conversion`.
"""

__all__ = ["__version__"]

__version__ = "1.0.0"
