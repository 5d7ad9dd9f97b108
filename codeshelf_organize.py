#!/usr/bin/env python3
"""
CodeShelf Organizer

Classify a captured block of code against a saved corpus and print the
organization suggestions as JSON.

The corpus is a JSONL file with one file row or snippet row per line (rows
may carry an explicit "kind" of "file" or "snippet").

Usage:
    # Classify one capture
    python codeshelf_organize.py data/corpus.jsonl capture.js

    # Classification only, written to a file
    python codeshelf_organize.py data/corpus.jsonl capture.js --no-suggestions -o result.json

    # Also group the whole corpus, or plan its reorganization
    python codeshelf_organize.py data/corpus.jsonl capture.js --group
    python codeshelf_organize.py data/corpus.jsonl capture.js --plan

    # Structured logs
    python codeshelf_organize.py data/corpus.jsonl capture.js --json-logs --verbose
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List

from core.config import get_config
from core.errors import CodeShelfError
from core.logging_config import setup_logging, get_logger
from core.models import ContentItem, CorpusSnapshot, parse_time
from intelligence.grouping import ContentGrouper
from intelligence.organizer import ContentOrganizer, ProcessOptions

logger = get_logger('codeshelf.cli')


def load_corpus(corpus_path: str) -> CorpusSnapshot:
    """Load a corpus from a JSONL file of item records."""
    items: List[ContentItem] = []
    with open(corpus_path, encoding='utf-8') as f:
        for line_number, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise CodeShelfError(
                    f"Invalid JSON on line {line_number}", path=corpus_path, line=line_number
                ) from e
            items.append(ContentItem.from_dict(record))

    logger.info(f"Loaded {len(items)} corpus items from {corpus_path}")
    return CorpusSnapshot.from_items(items)


def main():
    parser = argparse.ArgumentParser(
        description="CodeShelf Organizer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument('corpus', help="Corpus JSONL file")
    parser.add_argument('input', help="File holding the captured code")
    parser.add_argument('--timestamp', '-t',
                        help="Capture time (ISO 8601); defaults to the newest corpus item")
    parser.add_argument('--output', '-o', help="Write JSON here instead of stdout")
    parser.add_argument('--no-suggestions', action='store_true',
                        help="Classification only: skip merge, group and name suggestions")
    parser.add_argument('--group', '-g', action='store_true',
                        help="Also group the whole corpus")
    parser.add_argument('--plan', '-p', nargs='?', const='balanced', choices=['balanced', 'aggressive', 'conservative'],
                        help="Also build organization plans and mark the one this strategy picks")
    parser.add_argument('--json-logs', action='store_true',
                        help="Emit logs as JSON lines")
    parser.add_argument('--verbose', '-v', action='store_true',
                        help="Show debug logging")

    args = parser.parse_args()

    setup_logging(level='DEBUG' if args.verbose else 'INFO', json_format=args.json_logs)

    for path in (args.corpus, args.input):
        if not Path(path).exists():
            print(f"Error: File not found: {path}", file=sys.stderr)
            sys.exit(1)

    timestamp = None
    if args.timestamp:
        timestamp = parse_time(args.timestamp)
        if timestamp is None:
            print(f"Error: Unrecognized timestamp: {args.timestamp}", file=sys.stderr)
            sys.exit(2)

    try:
        config = get_config()
        corpus = load_corpus(args.corpus)
        text = Path(args.input).read_text(encoding='utf-8')

        organizer = ContentOrganizer(config)
        options = ProcessOptions(enable_organization=not args.no_suggestions)
        result = organizer.process_and_classify(text, corpus, timestamp=timestamp, options=options)

        payload = result.to_dict()
        if args.group:
            groups = ContentGrouper(config).group_content(corpus)
            payload['groups'] = [g.to_dict() for g in groups]
        if args.plan:
            plans = organizer.analyze_organization(corpus)
            selected = organizer.planner.select_plan(plans, strategy=args.plan)
            payload['structure'] = organizer.planner.analyze_structure(corpus).to_dict()
            payload['plans'] = [p.to_dict() for p in plans]
            payload['selected_plan'] = selected.id if selected else None
    except CodeShelfError as e:
        logger.error(e.message, extra={'error_type': e.error_type, 'details': e.details})
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        sys.exit(1)

    output = json.dumps(payload, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(output + '\n', encoding='utf-8')
        logger.info(f"Wrote result to {args.output}")
    else:
        print(output)


if __name__ == '__main__':
    main()
