"""Utilities to build multimodal input payloads for the Responses API."""

from typing import Any, Dict, List, Sequence


def to_image_data_url(image_b64: str, mime_type: str = "image/jpeg") -> str:
    """Wrap a base64 image string in a data URL suitable for vision input."""
    if not image_b64:
        raise ValueError("Image data must be a non-empty base64 string.")
    return f"data:{mime_type};base64,{image_b64}"


def build_inputs(system_prompt: str, user_prompt: str, image_urls: Sequence[str]) -> List[Dict[str, Any]]:
    """Build the Responses API input array with one image entry per URL.

    Args:
        system_prompt: Instructions for the analyst persona.
        user_prompt: The report request.
        image_urls: HTTP(S) or data URLs, in the order the model should see them.
    """
    if not image_urls:
        raise ValueError("At least one image is required for analysis.")
    inputs: List[Dict[str, Any]] = [
        {
            "type": "message",
            "role": "system",
            "content": [{"type": "input_text", "text": system_prompt}],
        },
        {"type": "message", "role": "user", "content": [{"type": "input_text", "text": user_prompt}]},
    ]
    inputs.append(
        {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_image", "image_url": url} for url in image_urls],
        }
    )
    return inputs
