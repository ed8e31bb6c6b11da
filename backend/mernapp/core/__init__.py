"""Core Layer — interface schema, validation, error taxonomy, classifier, cache.

Invariants:
    - No module in core/ imports from pipeline/, api/, handlers/, infrastructure/, or db/
    - No IO: everything here is driven by the shell with plain values
      (envelope/classifier build response objects but never send them)

Design Decisions:
    - Functional core separated from imperative shell (ADR: pipeline stages are the shell)
"""
