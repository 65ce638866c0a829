"""sitesmith: rule-based static site builder with tag pages and an RSS feed."""

__all__ = ["__version__"]

__version__ = "0.1.0"
