"""Read-only query selectors."""
