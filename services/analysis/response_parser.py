"""Helpers to extract report text and usage from Responses output."""

from __future__ import annotations

from typing import Any, Dict, Optional


def _field(obj: Any, name: str, default: Any = None) -> Any:
	if isinstance(obj, dict):
		return obj.get(name, default)
	return getattr(obj, name, default)


def extract_text(response: Any) -> str:
	"""Join every output_text entry of the response into one string."""
	output_text = _field(response, "output_text")
	if output_text:
		return output_text
	parts = []
	for item in _field(response, "output", None) or []:
		if _field(item, "type") != "message":
			continue
		for content in _field(item, "content", None) or []:
			if _field(content, "type") == "output_text":
				parts.append(_field(content, "text", "") or "")
	return "".join(parts)


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
	"""Return token usage if present."""
	usage = _field(response, "usage")
	return {
		"input_tokens": _field(usage, "input_tokens") if usage else None,
		"output_tokens": _field(usage, "output_tokens") if usage else None,
	}
