"""Route Modules — one file per concern.

Invariants:
    - Each module defines its own APIRouter
    - The pipeline catch-all is registered last so explicit routes win
"""
