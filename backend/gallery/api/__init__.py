"""HTTP layer: routers, dependencies, error handlers and response helpers."""
