from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

COLOR_PRIMARY = 0x5865F2
COLOR_SUCCESS = 0x57F287
COLOR_WARNING = 0xFEE75C
COLOR_ERROR = 0xED4245
COLOR_INFO = 0x5865F2
COLOR_DEFAULT = 0x2B2D31

COLOR_BOOTSTRAP_DEFAULT = 0x007BFF
COLOR_BOOTSTRAP_SUCCESS = 0x28A745
COLOR_BOOTSTRAP_WARNING = 0xFFC107
COLOR_BOOTSTRAP_ERROR = 0xDC3545
COLOR_BOOTSTRAP_INFO = 0x17A2B8

EMBED_TITLE_LIMIT = 256
EMBED_DESCRIPTION_LIMIT = 4096
EMBED_FOOTER_LIMIT = 2048
EMBED_FIELD_NAME_LIMIT = 256
EMBED_FIELD_VALUE_LIMIT = 1024
EMBED_MAX_FIELDS = 25

def truncate(text: Optional[str], limit: int) -> Optional[str]:
    if not text or len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."


def build_field(name: str, value: str, *, inline: bool = False) -> dict[str, Any]:
    return {
        "name": truncate(name, EMBED_FIELD_NAME_LIMIT),
        "value": truncate(value, EMBED_FIELD_VALUE_LIMIT),
        "inline": inline,
    }


def create_embed(
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    color: Optional[int] = None,
    footer_text: Optional[str] = None,
    footer_icon: Optional[str] = None,
    thumbnail_url: Optional[str] = None,
    image_url: Optional[str] = None,
    url: Optional[str] = None,
    fields: Optional[Iterable[dict[str, Any]]] = None,
    timestamp: bool = True,
) -> dict[str, Any]:
    embed: dict[str, Any] = {
        "color": COLOR_BOOTSTRAP_DEFAULT if color is None else color,
    }
    if title:
        embed["title"] = truncate(title, EMBED_TITLE_LIMIT)
    if description:
        embed["description"] = truncate(description, EMBED_DESCRIPTION_LIMIT)
    if url:
        embed["url"] = url
    if timestamp:
        embed["timestamp"] = datetime.now(timezone.utc).isoformat()

    if footer_text:
        embed["footer"] = {"text": truncate(footer_text, EMBED_FOOTER_LIMIT)}
        if footer_icon:
            embed["footer"]["icon_url"] = footer_icon

    if thumbnail_url:
        embed["thumbnail"] = {"url": thumbnail_url}
    if image_url:
        embed["image"] = {"url": image_url}
    if fields:
        add_fields(embed, fields)
    return embed


def add_fields(embed: dict[str, Any], fields: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Append fields to ``embed`` in place, stopping at Discord's field cap."""
    current = embed.setdefault("fields", [])
    for item in fields:
        if len(current) >= EMBED_MAX_FIELDS:
            break
        current.append(
            build_field(
                str(item.get("name", "")),
                str(item.get("value", "")),
                inline=bool(item.get("inline", False)),
            )
        )
    return embed


def create_success_embed(title: str, description: str, **options: Any) -> dict[str, Any]:
    options.setdefault("color", COLOR_BOOTSTRAP_SUCCESS)
    return create_embed(title=title, description=description, **options)


def create_error_embed(title: str, description: str, **options: Any) -> dict[str, Any]:
    options.setdefault("color", COLOR_BOOTSTRAP_ERROR)
    return create_embed(title=title, description=description, **options)


def create_warning_embed(title: str, description: str, **options: Any) -> dict[str, Any]:
    options.setdefault("color", COLOR_BOOTSTRAP_WARNING)
    return create_embed(title=title, description=description, **options)


def tag_embed_footers(
    embeds: Iterable[dict[str, Any]], tag: Optional[str]
) -> list[dict[str, Any]]:
    """Copies of ``embeds`` with every footer prefixed by ``[tag]``.

    Footers that already carry the prefix are left alone.
    """
    if not tag:
        return list(embeds)
    prefix = f"[{tag}]"
    tagged = []
    for embed in embeds:
        footer = dict(embed.get("footer") or {})
        text = str(footer.get("text") or "")
        if not text.startswith(prefix):
            footer["text"] = truncate(f"{prefix} {text}".strip(), EMBED_FOOTER_LIMIT)
        tagged.append({**embed, "footer": footer})
    return tagged
