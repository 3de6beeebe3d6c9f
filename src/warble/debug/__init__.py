"""Runtime introspection endpoints (profiling)."""
