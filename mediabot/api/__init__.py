"""MediaBot adapter package.

Architectural role:
- Defines the external interaction boundary for HTTP and CLI interfaces.
- Wires concrete clients into the orchestrator (`composition`).
- Keeps per-user conversation history between turns.

Scope:
- Request lifecycle control for adapter concerns only.
- No routing or model invocation logic lives here.
"""
