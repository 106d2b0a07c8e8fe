"""Database metadata: declarative Base shared by every ORM model."""
