"""CardSwap HTTP API."""
