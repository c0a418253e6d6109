"""objecthub HTTP API (FastAPI)."""
