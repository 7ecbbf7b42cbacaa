# Guardian - AI Tool Signature Catalog
#
# Static table of AI tool identities. Each signature pairs process-name
# hints (which application hosts the tool) with window-title patterns
# (what the tool's window looks like). Both must hit for a match.
#
# Catalog order is match priority: the first signature that matches a
# process wins. Signatures are not scored against each other.

from typing import Iterable, Iterator, Optional, Tuple

from ..models import Signature


DEFAULT_SIGNATURES: Tuple[Signature, ...] = (
    Signature(
        name="ChatGPT (Chrome)",
        process_name_hints=("chrome",),
        title_patterns=("ChatGPT", "OpenAI"),
    ),
    Signature(
        name="Claude AI",
        process_name_hints=("chrome", "firefox"),
        title_patterns=("Claude", "Anthropic"),
    ),
    Signature(
        name="GitHub Copilot",
        process_name_hints=("code",),
        title_patterns=("Copilot", "Visual Studio Code"),
    ),
)


class SignatureCatalog:
    """
    Read-only, ordered collection of AI tool signatures.

    Loaded once at startup; there are no mutation operations.
    """

    def __init__(self, signatures: Optional[Iterable[Signature]] = None):
        self._signatures: Tuple[Signature, ...] = (
            tuple(signatures) if signatures is not None else DEFAULT_SIGNATURES
        )

    def __iter__(self) -> Iterator[Signature]:
        return iter(self._signatures)

    def __len__(self) -> int:
        return len(self._signatures)

    def get(self, name: str) -> Optional[Signature]:
        """Look up a signature by tool name (exact match)."""
        for signature in self._signatures:
            if signature.name == name:
                return signature
        return None

    def names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self._signatures)
