"""Format retrieval results into a bounded context block for prompts."""

from __future__ import annotations

from typing import Optional, Sequence

from src.core.models import RetrievalResult

CONTEXT_HEADER = "--- Relevant Context from Knowledge Base ---"
CONTEXT_FOOTER = "--- End of Context ---"
ELLIPSIS = "..."


class ContextAssembler:
    """Render results with per-chunk source attribution within a size budget.

    When the block would exceed the budget the least-similar chunks are
    dropped first. If a single chunk is left and still too long, its text
    is cut to fit and marked with an ellipsis.
    """

    def __init__(self, max_context_chars: int = 4000) -> None:
        if max_context_chars <= 0:
            raise ValueError(f"max_context_chars must be positive, got {max_context_chars}")
        self.max_context_chars = max_context_chars

    def assemble(
        self, results: Sequence[RetrievalResult], max_context_length: Optional[int] = None
    ) -> str:
        if not results:
            return ""
        budget = self.max_context_chars if max_context_length is None else max_context_length

        kept = list(results)
        block = self._render(kept)
        while len(block) > budget and len(kept) > 1:
            least = min(range(len(kept)), key=lambda i: (kept[i].score, -i))
            del kept[least]
            block = self._render(kept)

        if len(block) <= budget:
            return block

        only = kept[0]
        room = budget - len(self._render([only], content="")) - len(ELLIPSIS)
        if room <= 0:
            return ""
        return self._render([only], content=only.chunk.content[:room].rstrip() + ELLIPSIS)

    @staticmethod
    def _source_line(position: int, result: RetrievalResult) -> str:
        return (
            f"[Source {position}: {result.document_title} "
            f"(document {result.document_id}), similarity {result.score:.3f}]"
        )

    def _render(self, results: Sequence[RetrievalResult], content: Optional[str] = None) -> str:
        lines = [CONTEXT_HEADER]
        for position, result in enumerate(results, start=1):
            lines.append("")
            lines.append(self._source_line(position, result))
            lines.append(result.chunk.content if content is None else content)
        lines.extend(["", CONTEXT_FOOTER])
        return "\n".join(lines)
