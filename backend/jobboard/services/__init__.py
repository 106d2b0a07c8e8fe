"""Services: the engine components that orchestrate DB, cache and side effects."""
