"""Domain modules: stats (store, coordinator, placeholders) and wins (registry)."""
