"""Media catalog clients.

Architectural role:
    Async HTTP implementations of the movie and TV catalog contracts
    (`protocols`), backed by Radarr and Sonarr v3 APIs.

Failure model:
    HTTP failures raise `ServiceHTTPError`; domain failures (for example a missing
    root folder) are reported through `OperationResult`.
"""
