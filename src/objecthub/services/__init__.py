"""objecthub service layer."""
