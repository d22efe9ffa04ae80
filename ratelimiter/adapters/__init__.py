"""Infrastructure adapters behind abstract interfaces."""
