"""API Layer — FastAPI routes and error handlers around the pipeline.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - All JSON responses use the {success, data | error} envelope
"""
