"""Media request resolution package.

Architectural role:
    Drives media turns to completion: intent classification, download-status
    short-circuit, and strategy dispatch across movie/TV x download/delete/browse,
    with multi-turn selection state held in the context store.

Composition:
    - `request_handler`: entrypoint and routing between strategies.
    - `strategies`: one class per workflow.
    - `selection`: pure selection-reference resolution.
    - `parsing`: typed parsers for model output and raw text.
    - `formatting`, `data_fetching`: presentation and grounding data.
    - `types`: shared data contracts.
"""
