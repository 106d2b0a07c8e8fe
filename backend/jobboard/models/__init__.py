"""ORM Models: SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - All models imported here so string-based relationship() references
      resolve before any query runs
"""

from jobboard.models.profile import Profile  # noqa: F401
from jobboard.models.job_posting import JobPosting  # noqa: F401
from jobboard.models.application import Application  # noqa: F401
from jobboard.models.notification import Notification  # noqa: F401
