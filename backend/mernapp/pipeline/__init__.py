"""Pipeline Layer — ordered request stages and the driver loop that runs them.

Invariants:
    - Stages return explicit step results (Continue | Respond | Fail)
    - Response shaping for failures is delegated to the ErrorClassifier

Design Decisions:
    - Stage order is fixed by build_pipeline(), not by registration side effects
"""
