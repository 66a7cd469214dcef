"""Infrastructure layer: provider adapters, persistence, record stores, observability."""
