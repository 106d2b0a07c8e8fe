"""HTTP API layer: routes, request dependencies and error handlers."""
