"""Business Handlers — application logic invoked after validation succeeds.

Invariants:
    - Handlers are keyed by the operationId declared in the interface schema
    - Handlers raise PipelineError subclasses; they never build error responses
"""
