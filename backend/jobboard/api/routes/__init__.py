"""Route modules, one file per resource.

Invariants:
    - Each module exposes a single `router` registered explicitly in main.py
"""
