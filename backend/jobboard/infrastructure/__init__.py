"""Infrastructure: database sessions, logging, read cache, email and object storage adapters."""
