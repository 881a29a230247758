# src/llm/config.py — v2
"""Remote provider preference parsed from AI_PROVIDER.

"openai,gemini" tries OpenAI first then Gemini; "none" disables the remote
tier. Unknown tokens are ignored; duplicates are dropped; an unusable
value falls back to the default order.
"""

from __future__ import annotations

from dataclasses import dataclass

KNOWN_PROVIDERS: tuple[str, ...] = ("openai", "gemini")
DEFAULT_PREFERENCE: tuple[str, ...] = ("openai", "gemini")

PROVIDER_LABELS: dict[str, str] = {"openai": "OpenAI", "gemini": "Gemini"}


@dataclass(frozen=True)
class ProviderPreference:
    """Ordered remote providers, or disabled."""

    providers: tuple[str, ...]
    disabled: bool = False

    @property
    def label(self) -> str:
        if self.disabled:
            return "Modo sin LLM"
        return " → ".join(PROVIDER_LABELS.get(p, p) for p in self.providers)


def parse_provider_preference(tokens: list[str]) -> ProviderPreference:
    """Build a preference from already-split, lower-cased tokens.

    Parsing stops at "none"; "none" alone disables the remote tier.
    """
    seen: set[str] = set()
    ordered: list[str] = []
    saw_none = False
    for token in tokens:
        if token == "none":
            saw_none = True
            break
        if token in KNOWN_PROVIDERS and token not in seen:
            ordered.append(token)
            seen.add(token)

    if saw_none and not ordered:
        return ProviderPreference(providers=(), disabled=True)
    if not ordered:
        return ProviderPreference(providers=DEFAULT_PREFERENCE)
    return ProviderPreference(providers=tuple(ordered))
