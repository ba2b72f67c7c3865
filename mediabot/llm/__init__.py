"""LLM access package.

Architectural role:
    Provides provider configuration, transport, retry-wrapped invocation, and the
    tools exposed to the default chat responder.

Module split:
    - `provider_config`: environment-driven provider, model, and service settings.
    - `client`: provider-specific HTTP transport producing `Message` objects.
    - `service`: `ChatModel` protocol and the retry-wrapped `invoke_model` entrypoint.
    - `tools`: tool specs and tool-call execution for the `InvokeTools` node.
"""
