"""
Shared Ollama utilities: base URL resolution and model availability check.
"""

import logging
import os

import requests

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


def ollama_base_url(base_url: str | None = None) -> str:
    """Explicit URL, else OLLAMA_HOST, else localhost. No trailing slash."""
    url = base_url or os.environ.get("OLLAMA_HOST") or DEFAULT_OLLAMA_URL
    if not url.startswith(("http://", "https://")):
        url = f"http://{url}"
    return url.rstrip("/")


def ollama_check_model(base_url: str, model: str) -> bool:
    """Check that Ollama is reachable and whether ``model`` is installed.

    Returns False (with a warning) when the model is missing; Ollama
    will then fail the first request with a clear message.
    Raises RuntimeError if Ollama is unreachable.
    """
    # Normalize model name for comparison; Ollama strips :latest
    bare = model.split(":")[0] if ":" in model else model

    try:
        resp = requests.get(f"{base_url}/api/tags", timeout=5)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise RuntimeError(
            f"Cannot reach Ollama at {base_url}. "
            "Is Ollama running? Start it with: ollama serve"
        ) from e

    installed = {m["name"] for m in resp.json().get("models", [])}
    # Ollama lists models as "name:tag", so check both exact and bare+:latest
    if model in installed or f"{model}:latest" in installed:
        return True
    if bare in installed or f"{bare}:latest" in installed:
        return True

    logger.warning(
        "Ollama model '%s' is not installed at %s. Pull it with: ollama pull %s",
        model, base_url, model,
    )
    return False
