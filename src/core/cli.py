"""CLI interface for the content core.

Provides command-line access to core operations:
- demo: Ingest sample documents, query them and generate ideas
- ingest: Add documents from files
- query: Search the knowledge base
- ideas: Generate content ideas for a persona and industry
- providers: List configured providers and their models
- serve: Start the FastAPI server
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional

from src.core.config import CoreConfig, MockConfig, RunMode
from src.core.log import configure_logging
from src.core.service import ContentCore

SAMPLE_DOCUMENTS = [
    (
        "Brand voice guide",
        "Our brand voice is plain, confident and practical. We write for busy "
        "marketing managers who want answers they can act on today. Avoid jargon "
        "and buzzwords. Every article should end with one concrete next step. "
        "Headlines promise a specific outcome rather than a vague benefit.",
        {"category_ids": ["brand"], "type": "guide"},
    ),
    (
        "Email onboarding playbook",
        "Onboarding emails convert best when each message has one goal. The first "
        "email welcomes the customer and links to a single setup task. The second "
        "email arrives two days later with a short case study. Open rates drop "
        "sharply after the fourth message, so sequences stay short. Subject lines "
        "under forty characters perform best on mobile.",
        {"category_ids": ["email", "lifecycle"], "type": "playbook"},
    ),
    (
        "Content pillar research",
        "Customer interviews surfaced three recurring pain points. Teams struggle "
        "to measure content ROI. Small teams cannot keep a consistent publishing "
        "cadence. Sales and marketing disagree on what a qualified lead is. Each "
        "pain point maps to a content pillar with its own keyword cluster.",
        {"category_ids": ["research"], "type": "research"},
    ),
    (
        "Social media benchmarks",
        "LinkedIn posts with a native document carousel earn about twice the "
        "engagement of link posts. Short videos under thirty seconds lead on "
        "Instagram. Posting three times a week beats daily posting for small "
        "accounts because quality stays higher. Replies within the first hour "
        "lift reach noticeably.",
        {"category_ids": ["social"], "type": "benchmark"},
    ),
]

DEMO_THRESHOLD = 0.1


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Content Core - knowledge-grounded content generation"
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run a complete demo")
    demo_parser.add_argument(
        "--query",
        default="How should we structure onboarding emails?",
        help="Knowledge query to demo",
    )

    # Ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Ingest documents")
    ingest_parser.add_argument("files", nargs="+", help="Files to ingest")
    ingest_parser.add_argument("--category", action="append", default=[], help="Category id")

    # Query command
    query_parser = subparsers.add_parser("query", help="Query the knowledge base")
    query_parser.add_argument("text", help="Query text")
    query_parser.add_argument("--limit", type=int, default=None, help="Number of chunks")
    query_parser.add_argument("--threshold", type=float, default=None, help="Minimum similarity")

    # Ideas command
    ideas_parser = subparsers.add_parser("ideas", help="Generate content ideas")
    ideas_parser.add_argument("persona", help="Target persona")
    ideas_parser.add_argument("industry", help="Industry")
    ideas_parser.add_argument("--provider", default=None, help="Provider name")
    ideas_parser.add_argument("--count", type=int, default=10, help="Number of ideas")
    ideas_parser.add_argument(
        "--use-knowledge-base", action="store_true", help="Ground ideas in the knowledge base"
    )

    # Providers command
    subparsers.add_parser("providers", help="List configured providers")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start API server")
    serve_parser.add_argument("--host", default=None, help="Host")
    serve_parser.add_argument("--port", type=int, default=None, help="Port")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "demo":
        run_demo(args.query)
    elif args.command == "ingest":
        run_ingest(args.files, args.category)
    elif args.command == "query":
        run_query(args.text, args.limit, args.threshold)
    elif args.command == "ideas":
        run_ideas(args.persona, args.industry, args.provider, args.count, args.use_knowledge_base)
    elif args.command == "providers":
        run_providers()
    elif args.command == "serve":
        run_serve(args.host, args.port)
    else:
        parser.print_help()
        sys.exit(1)


def load_samples(core: ContentCore) -> list[str]:
    """Ingest the sample documents and wait for them; returns their ids."""
    doc_ids = []
    for title, text, metadata in SAMPLE_DOCUMENTS:
        doc_ids.append(core.ingest_text(title, text, metadata).unwrap().doc_id)
    for doc_id in doc_ids:
        core.wait_for_document(doc_id)
    return doc_ids


def run_demo(query: str) -> None:
    """Run a complete demo with sample data."""
    print("=" * 60)
    print("Content Core - Demo Mode")
    print("=" * 60)
    print()

    core = ContentCore(MockConfig.default())

    print(f"[1/3] Ingesting {len(SAMPLE_DOCUMENTS)} sample documents...")
    load_samples(core)
    stats = core.knowledge_stats()
    print(f"      {stats.documents_by_status['ready']} ready, {stats.total_chunks} chunks")
    print()

    print(f'[2/3] Querying: "{query}"')
    result = core.query_knowledge(query, similarity_threshold=DEMO_THRESHOLD)
    if result.is_err():
        print(f"ERROR: {result.unwrap_err()}")
        sys.exit(1)
    for i, hit in enumerate(result.unwrap(), 1):
        print(f"  [{i}] {hit.document_title} (score: {hit.score:.3f})")
        print(f"      {hit.chunk.content[:100]}...")
    print()

    print("[3/3] Generating ideas: marketing manager / B2B SaaS")
    outcome = core.generate_ideas("marketing manager", "B2B SaaS", count=5)
    if not outcome.success:
        print(f"ERROR: {outcome.error}")
        sys.exit(1)
    for idea in outcome.result or []:
        print(f"  - {idea.title}")
    print(f"      attempts: {outcome.attempts_made}, provider: {outcome.provider}")
    print("=" * 60)

    # JSON output for programmatic use
    json_output = {
        "query": query,
        "sources": [
            {"document": hit.document_title, "chunk_index": hit.chunk.chunk_index, "score": hit.score}
            for hit in result.unwrap()
        ],
        "ideas": [idea.model_dump() for idea in outcome.result or []],
    }
    print("JSON output:")
    print(json.dumps(json_output, indent=2))
    core.close()


def run_ingest(files: list[str], categories: list[str]) -> None:
    """Ingest documents from files and wait for each to finish."""
    core = ContentCore(CoreConfig())
    metadata = {"category_ids": categories} if categories else {}

    accepted = []
    for file_path in files:
        result = core.ingest_document(file_path, metadata)
        if result.is_err():
            print(f"WARNING: {file_path}: {result.unwrap_err()}")
            continue
        accepted.append(result.unwrap().doc_id)

    summary = []
    for doc_id in accepted:
        document = core.wait_for_document(doc_id)
        if document is not None:
            summary.append(
                {
                    "doc_id": document.doc_id,
                    "title": document.title,
                    "status": document.status.value,
                    "chunks": document.chunk_count,
                    "error": document.error,
                }
            )
    core.close()

    print(json.dumps(summary, indent=2))
    if not any(item["status"] == "ready" for item in summary):
        sys.exit(1)


def run_query(text: str, limit: Optional[int], threshold: Optional[float]) -> None:
    """Query the configured knowledge base."""
    config = CoreConfig()
    core = ContentCore(config)

    # An empty mock store has nothing to search, so load sample data
    if config.mode == RunMode.MOCK and core.knowledge_stats().total_chunks == 0:
        load_samples(core)
        if threshold is None:
            threshold = DEMO_THRESHOLD

    result = core.query_knowledge(text, limit=limit, similarity_threshold=threshold)
    core.close()
    if result.is_err():
        print(f"ERROR: {result.unwrap_err()}")
        sys.exit(1)

    print(json.dumps({
        "query": text,
        "results": [
            {
                "document_id": hit.document_id,
                "document_title": hit.document_title,
                "chunk_index": hit.chunk.chunk_index,
                "score": round(hit.score, 4),
                "content": hit.chunk.content,
            }
            for hit in result.unwrap()
        ],
    }, indent=2))


def run_ideas(
    persona: str, industry: str, provider: Optional[str], count: int, use_knowledge_base: bool
) -> None:
    """Generate ideas and print them as JSON."""
    core = ContentCore(CoreConfig())
    outcome = core.generate_ideas(
        persona, industry, provider=provider, count=count, use_knowledge_base=use_knowledge_base
    )
    core.close()

    if not outcome.success:
        print(f"ERROR: Failed after {outcome.attempts_made} attempts. Last error: {outcome.error}")
        sys.exit(1)
    print(json.dumps({
        "provider": outcome.provider,
        "attempts": outcome.attempts_made,
        "ideas": [idea.model_dump() for idea in outcome.result or []],
    }, indent=2))


def run_providers() -> None:
    core = ContentCore(CoreConfig())
    print(json.dumps(
        {provider: core.models_for(provider) for provider in core.available_providers()},
        indent=2,
    ))
    core.close()


def run_serve(host: Optional[str], port: Optional[int]) -> None:
    """Start the FastAPI server."""
    import uvicorn

    config = CoreConfig()
    uvicorn.run("src.api.app:app", host=host or config.api_host, port=port or config.api_port)


if __name__ == "__main__":
    main()
