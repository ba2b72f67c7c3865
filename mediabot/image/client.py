"""HTTP clients for image generation and LaTeX equation rendering.

Processing flow (images):
    1. Resolve active provider config from `mediabot.llm.provider_config`.
    2. Load the API key when the provider needs one.
    3. POST an OpenAI-style `images/generations` payload.
    4. Return the first image URL (or a `data:` URI for base64 responses).

Processing flow (equations):
    POST `{latex, token}` to `<EQUATIONS_URL>/equations` and return the `url` field.

Error handling strategy:
    - Non-2xx responses raise `ServiceHTTPError` for the retry layer.
    - Missing keys raise `AuthError`.
    - Responses without an image reference raise `ValidationError`.
"""

import requests

from mediabot.core.errors import AuthError, ErrorCategory, ServiceHTTPError, ValidationError, parse_retry_after
from mediabot.llm.provider_config import (
    EQUATIONS_API_KEY,
    EQUATIONS_URL,
    IMAGE_MODEL,
    IMAGE_PROVIDER,
    IMAGE_PROVIDERS,
    IMAGE_SIZE,
    REQUEST_TIMEOUT_SECONDS,
    load_key,
)


def _raise_for_status(service: str, response: requests.Response) -> None:
    if response.status_code >= 400:
        raise ServiceHTTPError(
            service,
            response.status_code,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )


def send_image_request(prompt: str, size: str = IMAGE_SIZE) -> str:
    """Generate one image and return its URL.

    Args:
        prompt: Text prompt for generation.
        size: Provider size string such as `1024x1024`.

    Returns:
        Image URL or `data:image/png;base64,...` URI.
    """
    provider_config = IMAGE_PROVIDERS.get(IMAGE_PROVIDER)
    if not provider_config:
        raise ValueError(f"Unknown image provider: {IMAGE_PROVIDER}")

    headers = {"Content-Type": "application/json"}
    key_file = provider_config.get("key_file")
    if key_file is not None:
        api_key = load_key(key_file)
        if not api_key:
            raise AuthError(
                f"Image API key missing or empty: {key_file}",
                category=ErrorCategory.IMAGE_SERVICE,
            )
        headers["Authorization"] = f"Bearer {api_key}"

    payload = {"model": IMAGE_MODEL, "prompt": prompt, "n": 1, "size": size}
    response = requests.post(
        provider_config["url"],
        json=payload,
        headers=headers,
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    _raise_for_status(IMAGE_PROVIDER, response)

    items = response.json().get("data") or []
    if not items:
        raise ValidationError("image provider returned no images", category=ErrorCategory.IMAGE_SERVICE)

    first = items[0]
    if first.get("url"):
        return first["url"]
    if first.get("b64_json"):
        return f"data:image/png;base64,{first['b64_json']}"
    raise ValidationError("image provider returned no image reference", category=ErrorCategory.IMAGE_SERVICE)


def send_equation_request(latex: str) -> str:
    """Render LaTeX to an image and return its URL."""
    response = requests.post(
        f"{EQUATIONS_URL.rstrip('/')}/equations",
        json={"latex": latex, "token": EQUATIONS_API_KEY},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    _raise_for_status("equations", response)

    data = response.json()
    url = data.get("url") if isinstance(data, dict) else None
    if not url:
        raise ValidationError("equation service returned no url", category=ErrorCategory.EQUATION_SERVICE)
    return url
