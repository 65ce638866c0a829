"""Markdown and template collaborators."""
