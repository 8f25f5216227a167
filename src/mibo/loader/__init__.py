"""Record loaders for the CLI."""

from mibo.loader.records import load_records, parse_jsonl, parse_records

__all__ = [
    "load_records",
    "parse_jsonl",
    "parse_records",
]
