"""objecthub API middleware."""
