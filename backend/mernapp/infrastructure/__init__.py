"""Infrastructure Layer — datastore, connection supervision, logging setup.

Invariants:
    - Infrastructure never shapes HTTP responses
    - Datastore failures inside a session surface as DatabaseError

Design Decisions:
    - Supervisor separated from the datastore: the retry policy does not know about SQLAlchemy
"""
