"""Process-local state package.

Architectural role:
    - `context_store`: per-user expiring workflow contexts for multi-turn media
      selection. This is the only mutable state shared by concurrent turns.
    - `conversation_manager`: adapter-side per-user message history, kept outside
      the orchestration core.

Nothing here is persisted; state lives for the lifetime of the process.
"""
