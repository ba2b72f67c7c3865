"""Core orchestration package.

Architectural role:
    Turns one user utterance into a reply by walking an explicit dialogue graph and
    wraps every external call in the resilient execution layer.

Composition:
    - `engine`: `Orchestrator` with one handler per graph node.
    - `graph`: static edges and conditional-edge predicates.
    - `routing_types`: response categories, node ids, and turn state.
    - `messages`: conversation message model.
    - `retry`: per-attempt timeout, backoff, and per-service policies.
    - `errors`: failure taxonomy and classifier.

Determinism and side effects:
    Package import itself is deterministic and side-effect free.
"""
