"""ORM Models — SQLAlchemy declarative models for the sample business resource.

Invariants:
    - All models inherit from Base (db/base.py)
    - Imported by the boot continuation only, after the datastore is reachable
"""

from mernapp.models.item import Item  # noqa: F401
