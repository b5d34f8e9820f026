"""Main entry point for the deep research engine."""

import argparse
import asyncio
import os
import sys

from src.deep_research import (
    DEFAULT_BREADTH,
    DEFAULT_DEPTH,
    DeepResearchError,
    ResearchConfig,
    configure_logging,
    create_research_session,
)
from src.deep_research.agent_engine import create_agent_research_engine
from src.deep_research.llm import StructuredModelClient, create_chat_model
from src.deep_research.progress import SourceEvent, StatusEvent
from src.deep_research.tools import create_web_search
from src.deep_research.tracking import (
    configure_tracking,
    record_outcome,
    track_research_run,
)


class PrintingProgressSink:
    """Prints research progress to stdout as it happens."""

    def emit(self, event) -> None:
        if isinstance(event, StatusEvent):
            print(f"  - {event.title}")
        elif isinstance(event, SourceEvent):
            print(f"    source: {event.title} <{event.url}>")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recursive deep research")
    parser.add_argument("question", nargs="*", help="The research question")
    parser.add_argument("--depth", type=int, default=DEFAULT_DEPTH)
    parser.add_argument("--breadth", type=int, default=DEFAULT_BREADTH)
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=os.getenv("LOG_FORMAT", "").lower() == "json",
    )
    parser.add_argument("--track", action="store_true", help="Log the run to MLflow")
    parser.add_argument(
        "--agent", action="store_true", help="Use the search-and-evaluate agent variant"
    )
    parser.add_argument("--serve", action="store_true", help="Start the HTTP server")
    parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


async def run_session(config: ResearchConfig, question: str, depth: int, breadth: int):
    session = create_research_session(config, sink=PrintingProgressSink())
    return await session.run(question, depth, breadth)


async def run_agent_variant(config: ResearchConfig, question: str, depth: int, breadth: int):
    client = StructuredModelClient(create_chat_model(config), name="research")
    search_client = StructuredModelClient(
        create_chat_model(config, config.search_model_name), name="search"
    )
    engine = create_agent_research_engine(
        config, client, create_web_search(config, search_client), sink=PrintingProgressSink()
    )
    state = await engine.research(question, depth, breadth)
    return state, await engine.report(state)


def serve(port: int) -> None:
    import uvicorn

    from src.deep_research.api import create_app

    uvicorn.run(create_app(), host="0.0.0.0", port=port)


def main(argv: list[str] | None = None):
    """Run a research session with a question from the command line or interactively."""
    args = parse_args(argv)
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"), json_logs=args.json_logs)

    if args.serve:
        serve(args.port)
        return

    question = " ".join(args.question).strip()
    if not question:
        print("Deep Research")
        print("=" * 40)
        question = input("Enter your research question: ").strip()

    if not question:
        print("No question provided. Exiting.")
        return

    print(f"\nResearching: {question} (depth={args.depth}, breadth={args.breadth})")
    print("-" * 40)

    try:
        config = ResearchConfig.from_env()
        if args.agent:
            state, report = asyncio.run(
                run_agent_variant(config, question, args.depth, args.breadth)
            )
            print("\n" + "=" * 40)
            print(report)
            print(f"\n{len(state.learnings)} learnings from {len(state.search_results)} sources")
            return

        if args.track:
            configure_tracking()
            with track_research_run(question, args.depth, args.breadth) as record:
                outcome = asyncio.run(run_session(config, question, args.depth, args.breadth))
                record_outcome(record, outcome)
        else:
            outcome = asyncio.run(run_session(config, question, args.depth, args.breadth))
    except DeepResearchError as e:
        print(f"Error during research: {e}")
        sys.exit(1)

    print("\n" + "=" * 40)
    print(outcome.report.title.upper())
    print("=" * 40)
    print(outcome.report.content)

    research = outcome.research
    print("\n" + "=" * 40)
    print(
        f"{len(research.learnings)} learnings, {len(research.sources)} sources, "
        f"{len(research.search_queries)} queries"
    )
    if args.track:
        print("View the run in MLflow UI: mlflow ui")


if __name__ == "__main__":
    main()
