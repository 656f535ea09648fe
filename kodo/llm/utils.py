import json
from typing import Any


def parse_args(raw: str | dict | None) -> dict:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def blocks_to_text(content: str | list) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(block["text"])
        elif isinstance(block, str):
            parts.append(block)
    return "\n\n".join(parts)


def to_openai_content(content: str | list[dict[str, Any]]) -> str | list[dict[str, Any]]:
    """Convert stored content parts into OpenAI chat content parts."""
    if isinstance(content, str):
        return content
    parts: list[dict[str, Any]] = []
    for part in content:
        match part.get("type"):
            case "text":
                parts.append({"type": "text", "text": part["text"]})
            case "image":
                url = part.get("url") or f"data:{part.get('mimeType', 'image/png')};base64,{part['data']}"
                parts.append({"type": "image_url", "image_url": {"url": url}})
            case _:
                parts.append(part)
    return parts
