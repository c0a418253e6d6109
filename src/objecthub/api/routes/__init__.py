"""objecthub API routes."""
