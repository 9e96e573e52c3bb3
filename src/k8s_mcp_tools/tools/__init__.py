"""Tool handlers, one module per wrapped CLI or API."""
