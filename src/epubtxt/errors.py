from __future__ import annotations


class ExtractionError(RuntimeError):
    """Base class for every failure raised while extracting an EPUB."""

    def __init__(self, reason: str, *, stage: str | None = None, path: str | None = None) -> None:
        self.reason = reason
        self.stage = stage
        self.path = path
        super().__init__(self._format())

    def _format(self) -> str:
        context = ": ".join(part for part in (self.stage, self.path) if part)
        if context:
            return f"{self.reason} ({context})"
        return self.reason


class StructuralError(ExtractionError):
    """Raised when the container or package document is unusable."""


class ContentError(ExtractionError):
    """Raised for a single unusable spine entry; recovered by the extractor."""


class EmptyResultError(ExtractionError):
    """Raised when no spine entry produced readable text."""

    def __init__(self, reason: str = "no readable text content found", **kwargs) -> None:
        super().__init__(reason, **kwargs)
