"""
Search indexing and query engine package.

This package provides a pure-Python search stack:
- payload: Decoding of generated search payloads
- corpus: Record validation and stable document ids
- analyzers: Tokenizers and filters (case/accent folding, stopwords)
- index: Inverted index builder and immutable snapshots
- query: Query parsing (required tokens, phrases, prefixes)
- scoring: Candidate selection and ranking
- snippet / results: Result assembly
- search_index: Host-owned index handle with atomic snapshot swaps
"""
