"""Job Board Engine: job-posting and application lifecycle for a university job board.

Invariants:
    - Package root has no import side effects
"""

__version__ = "1.0.0"
