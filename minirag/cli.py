"""Command line entry point: ingest a text file and/or query a collection.

Usage:
    minirag -f texts/water.txt                 # Ingest into the default collection
    minirag -q "Where does rain come from?"    # Query the default collection
    minirag --list                             # List stored collections
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from minirag import config
from minirag.embedder import HashEmbedder, OllamaEmbedder, RetryingEmbedder
from minirag.errors import RagError
from minirag.rag.collection import CollectionConfig, Distance
from minirag.rag.database import Database
from minirag.rag.ingest import IngestPipeline
from minirag.rag.retriever import Retriever

logger = structlog.get_logger()


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    """Configure structured JSON logging on stderr."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level.upper(),
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minirag",
        description="Store text files as vectors and search them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  minirag -f texts/water.txt                      # Ingest a file
  minirag -q "What is water?" -k 3                # Top 3 matches
  minirag --embedder hash -f notes.txt -q "rain"  # Offline, no model server
        """,
    )

    parser.add_argument("-f", "--filename", type=Path, help="Text file to ingest")
    parser.add_argument(
        "--chunksize",
        type=int,
        default=config.CHUNK_SIZE,
        help=f"Chunk size in characters (default: {config.CHUNK_SIZE})",
    )
    parser.add_argument(
        "--collection",
        default=config.DEFAULT_COLLECTION,
        help=f"Name of the collection (default: {config.DEFAULT_COLLECTION})",
    )
    parser.add_argument("-q", "--query", help="Free-text query")
    parser.add_argument(
        "-k",
        "--top-k",
        type=int,
        default=config.RETRIEVAL_TOP_K,
        help=f"Number of results (default: {config.RETRIEVAL_TOP_K})",
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        default=config.DATABASE_PATH,
        help=f"Database directory (default: {config.DATABASE_PATH})",
    )
    parser.add_argument(
        "--embedder",
        choices=["ollama", "hash"],
        default="ollama",
        help="Embedding backend (default: ollama)",
    )
    parser.add_argument(
        "--distance",
        choices=[d.value for d in Distance],
        default=Distance.EUCLIDEAN.value,
        help="Distance metric for newly created collections",
    )
    parser.add_argument(
        "--word-boundaries",
        action="store_true",
        help="Do not cut chunks inside words",
    )
    parser.add_argument("--list", action="store_true", help="List stored collections")
    parser.add_argument("--delete-collection", metavar="NAME", help="Delete a collection")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logs",
    )

    return parser


def build_embedder(name: str):
    if name == "hash":
        return HashEmbedder()
    return RetryingEmbedder(OllamaEmbedder())


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else config.LOG_LEVEL)

    embedder = None
    try:
        database = Database.open(args.db_path)

        if args.delete_collection:
            database.delete_collection(args.delete_collection)
            print(f"Deleted collection '{args.delete_collection}'.")

        if args.list:
            for name in database.collection_names():
                print(f"{name}: {len(database.get_collection(name))} records")

        if args.filename or args.query is not None:
            embedder = build_embedder(args.embedder)

        if args.filename:
            pipeline = IngestPipeline(
                database,
                embedder,
                chunk_size=args.chunksize,
                chunk_overlap=0,
                respect_word_boundaries=args.word_boundaries,
                collection_config=CollectionConfig(distance=Distance(args.distance)),
            )
            result = await pipeline.ingest_file(args.filename, args.collection)
            print(
                f"Stored {result.records_stored} records in '{args.collection}': {result.ids}"
            )

        if args.query is not None:
            retriever = Retriever(
                database,
                embedder,
                collection_name=args.collection,
                chunk_size=args.chunksize,
                top_k=args.top_k,
            )
            for result in await retriever.retrieve(args.query):
                text = result.text if result.text is not None else "Data is not a text."
                print(f"{result.distance:.5f} | ID: {result.record_id} {text}")

        if not (args.filename or args.query is not None or args.list or args.delete_collection):
            print(f"Database at {database.path} contains {len(database)} collections.")

        return 0

    except RagError as e:
        logger.error("command_failed", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    finally:
        inner = getattr(embedder, "inner", embedder)
        if isinstance(inner, OllamaEmbedder):
            await inner.aclose()


def run() -> None:
    """Console script wrapper."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nCancelled by user.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
