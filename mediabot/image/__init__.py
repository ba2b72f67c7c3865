"""Image rendering adapter package.

Scope:
    Provides the blocking HTTP clients for text-to-image generation and LaTeX
    equation rendering, plus the async `RenderGateway` used by the image and math
    graph nodes.

Non-goals:
    - No image storage or hosting.
    - No LaTeX compilation; equations are rendered by an external service.
"""
