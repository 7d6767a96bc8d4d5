# src/conversation/render.py — v2
"""Markdown rendering and filename slugs for persisted conversations."""

from __future__ import annotations

import getpass
import html
import re

from askpipe.conversation.models import Conversation, Message

_STOPWORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "should", "could", "can", "may", "might",
    "must", "shall", "how", "what", "when", "where", "who", "why", "which", "this", "that",
    "these", "those", "i", "you", "he", "she", "it", "we", "they", "me", "him", "her",
    "us", "them", "my", "your", "his", "its", "our", "their",
})
_SLUG_MAX_WORDS = 5
_SLUG_MAX_CHARS = 40
_NON_WORD = re.compile(r"[^0-9a-z]+")
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def slugify_prompt(prompt: str) -> str:
    """Kebab-case slug from the first significant words of a prompt."""
    words: list[str] = []
    for raw in prompt.lower().split():
        cleaned = _NON_WORD.sub("", raw)
        if not cleaned or cleaned in _STOPWORDS:
            continue
        words.append(cleaned)
        if len(words) == _SLUG_MAX_WORDS:
            break

    if not words:
        return "conversation"
    return "-".join(words)[:_SLUG_MAX_CHARS].rstrip("-") or "conversation"


def markdown_filename(conversation: Conversation) -> str:
    """<first 8 id chars>_<slug of the first prompt>.md"""
    first = conversation.first_user_message()
    slug = slugify_prompt(first.headline() if first else "")
    return f"{conversation.id[:8]}_{slug}.md"


def _username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "user"


def _render_user(message: Message, username: str) -> str:
    escaped = html.escape(message.content, quote=False).replace("\n", "<br>")
    resources = ""
    if message.resources:
        items = "".join(
            f"<li>{html.escape(r.label(), quote=False)}</li>" for r in message.resources
        )
        resources = f"<p><small><strong>Resources:</strong></small></p><ul>{items}</ul>"
    return (
        '<div class="askpipe-prompt">\n'
        f"<h3>{html.escape(username)}</h3>\n"
        f"<p>{escaped}</p>\n"
        f"{resources}\n"
        "</div>\n\n"
    )


def _render_assistant(message: Message) -> str:
    out = f"**Assistant:** {message.content}"
    if message.usage.is_known:
        out += f"\n\n<small>**Tokens:** {message.usage.format_short()}</small>"
    return out + "\n"


def render_markdown(conversation: Conversation) -> str:
    """Render the whole conversation as a chat-style markdown document."""
    username = _username()
    lines = [
        f"### Conversation {conversation.id}\n\n",
        f"**Created:** {conversation.created_at.strftime(_TIME_FORMAT)}\n",
        f"**Updated:** {conversation.updated_at.strftime(_TIME_FORMAT)}\n",
        f"**Messages:** {len(conversation.messages)}\n\n",
    ]
    if conversation.model:
        lines.append(f"**Model:** {conversation.model}\n\n")
    lines.append("---\n\n")

    for i, message in enumerate(conversation.messages):
        if i > 0:
            lines.append("\n---\n\n")
        if message.role == "User":
            lines.append(_render_user(message, username))
        else:
            lines.append(_render_assistant(message))
        lines.append(f"\n*{message.timestamp.strftime(_TIME_FORMAT)}*\n")

    return "".join(lines)
