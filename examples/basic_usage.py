"""Basic content core example.

Demonstrates the ingest, query and generate workflow using mock mode.
No API keys required.

Usage:
    python examples/basic_usage.py
"""

from src.core.config import MockConfig
from src.core.service import ContentCore


def main() -> None:
    # 1. Configure the core in mock mode (no API keys needed)
    config = MockConfig.with_overrides(chunk_size=200, top_k=3, similarity_threshold=0.1)
    core = ContentCore(config)

    # 2. Add knowledge documents
    documents = [
        (
            "Webinar playbook",
            "Webinars convert enterprise buyers when they run under forty five minutes. "
            "Send the recording within a day, with one follow-up question. "
            "Attendance peaks on Tuesday and Wednesday mornings.",
            {"category_ids": ["events"]},
        ),
        (
            "Newsletter benchmarks",
            "B2B newsletters average a thirty percent open rate. "
            "A single featured article beats a digest of links for click-through. "
            "Plain-text layouts land in the primary inbox more often.",
            {"category_ids": ["email"]},
        ),
    ]

    doc_ids = []
    for title, text, metadata in documents:
        result = core.ingest_text(title, text, metadata)
        if result.is_err():
            print(f"Ingest failed: {result.unwrap_err()}")
            return
        doc_ids.append(result.unwrap().doc_id)

    # Ingestion runs in the background
    for doc_id in doc_ids:
        document = core.wait_for_document(doc_id)
        if document is not None:
            print(f"{document.title}: {document.status.value}, {document.chunk_count} chunks")

    # 3. Query the knowledge base
    for query in ["When should we run webinars?", "How do newsletters perform?"]:
        result = core.build_context(query)
        print(f"\nQ: {query}")
        if result.is_ok():
            print(result.unwrap() or "   (no matching knowledge)")
        else:
            print(f"   Error: {result.unwrap_err()}")

    # 4. Generate ideas grounded in the knowledge base
    outcome = core.generate_ideas(
        "demand generation lead", "B2B software", count=3, use_knowledge_base=True
    )
    if outcome.success:
        print(f"\nIdeas ({outcome.attempts_made} attempt(s), provider {outcome.provider}):")
        for idea in outcome.result or []:
            print(f"  - {idea.title}: {idea.description}")
    else:
        print(f"\nGeneration failed: {outcome.error}")

    core.close()


if __name__ == "__main__":
    main()
