"""Compile .gmd documents to HTML and serve them with view analytics."""
