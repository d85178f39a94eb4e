"""Command line interface for the knowledge base."""

import asyncio
import logging
import sys

from . import config
from .completion import answer
from .kv_store import SqliteKeyValueStore
from .knowledge_base import KnowledgeBase
from .rag.corpus import Outcome
from .rag.embedder import embed_texts, embedding_available
from .rag.errors import EmbeddingUnavailable, KnowledgeBaseError

logger = logging.getLogger(__name__)


def _open_kb(db_path: str) -> KnowledgeBase:
    embed_fn = embed_texts if embedding_available() else None
    return KnowledgeBase(store=SqliteKeyValueStore(db_path), embed_fn=embed_fn).open()


async def _try_rebuild(kb: KnowledgeBase) -> None:
    try:
        await kb.rebuild_index()
    except EmbeddingUnavailable as e:
        logger.warning(f"[CLI] Vector index unavailable, using lexical search: {e}")


async def _run(args) -> int:
    kb = _open_kb(args.db)

    if args.cmd == "add":
        text = sys.stdin.read() if args.text == "-" else args.text
        added = await kb.add_free_text(text)
        print(f"Added {added} chunk(s) to the knowledge base.")
    elif args.cmd == "feedback":
        chunk = await kb.save_qa_pair(args.question, args.answer, args.tag)
        print(f"Saved {chunk.id}.")
    elif args.cmd == "build-index":
        snapshot = await kb.rebuild_index()
        print(f"Built vector index: {len(snapshot)} chunk(s), dimension {snapshot.dimension}.")
    elif args.cmd == "context":
        if args.semantic:
            await _try_rebuild(kb)
        details = await kb.retrieve_with_details(args.query, args.k)
        if not details["formatted_content"]:
            print("No relevant knowledge found.")
            return 0
        for i, hit in enumerate(details["hits"], start=1):
            print(f"[{i}] {hit.chunk.id} ({hit.chunk.source_tag.value}) score={hit.score:.4f} via {details['mode']}")
        print("-" * 80)
        print(details["formatted_content"])
    elif args.cmd == "ask":
        if args.semantic:
            await _try_rebuild(kb)
        print(await answer(kb, args.question, args.k))
    elif args.cmd == "stats":
        stats = kb.stats()
        print(f"Builtin chunks: {stats['builtin']}")
        print(f"User chunks:    {stats['user']}")
        print(f"Total:          {stats['total']}")
    elif args.cmd == "reset":
        kb.reset()
        print("Knowledge base cleared.")
    return 0


def main():
    """Main entry point for the knowledge base CLI."""
    import argparse

    parser = argparse.ArgumentParser(description='Dragon knowledge base (RAG) tool')
    parser.add_argument('--db', default=config.KB_DB_PATH, help='Path to the sqlite store')
    sub = parser.add_subparsers(dest='cmd', required=True)

    p_add = sub.add_parser('add', help='Add free text (blank lines separate chunks)')
    p_add.add_argument('text', help="Text to add, or '-' to read stdin")

    p_fb = sub.add_parser('feedback', help='Save a question/answer pair with an outcome')
    p_fb.add_argument('question')
    p_fb.add_argument('answer')
    p_fb.add_argument('--tag', default=Outcome.HELPFUL.value,
                      choices=[o.value for o in Outcome])

    p_ctx = sub.add_parser('context', help='Show the context block for a query')
    p_ctx.add_argument('query')
    p_ctx.add_argument('--k', type=int, default=config.RAG_TOP_K)
    p_ctx.add_argument('--semantic', action='store_true', help='Build the vector index first')

    p_ask = sub.add_parser('ask', help='Answer a question using the knowledge base')
    p_ask.add_argument('question')
    p_ask.add_argument('--k', type=int, default=config.RAG_TOP_K)
    p_ask.add_argument('--semantic', action='store_true', help='Build the vector index first')

    sub.add_parser('build-index', help='Embed the corpus (checks the embedding setup)')
    sub.add_parser('stats', help='Show knowledge base statistics')
    sub.add_parser('reset', help='Remove every chunk')

    args = parser.parse_args()
    if getattr(args, 'k', 1) <= 0:
        parser.error('--k must be a positive integer')

    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s: %(message)s")

    try:
        return asyncio.run(_run(args))
    except KnowledgeBaseError as e:
        print(f"⚠️  {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    exit(main())
