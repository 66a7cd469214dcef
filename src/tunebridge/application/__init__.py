"""Application layer: resolution services and the link cache."""
