"""Text chunking for the RAG index.

Splits a document into paragraph-aligned chunks of bounded size, falling
back to sentence boundaries for paragraphs that do not fit into one chunk,
and prefixes every chunk but the first with the tail of its predecessor.
"""

import re

DEFAULT_CHUNK_SIZE = 900   # characters per chunk body
DEFAULT_OVERLAP = 120      # characters carried over from the previous chunk
MIN_CHUNK_SIZE = 200

_PARAGRAPH_BREAK = re.compile(r"\n{2,}")
# Latin terminators need trailing whitespace, CJK terminators do not
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+|(?<=[。！？])\s*")


def normalize_text(text: str) -> str:
    """Unify line endings to \\n and strip surrounding whitespace."""
    return text.replace("\r\n", "\n").replace("\r", "\n").strip()


def _split_sentences(paragraph: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_BREAK.split(paragraph) if s.strip()]


def _split_pieces(text: str, chunk_size: int) -> list[str]:
    pieces: list[str] = []
    for paragraph in _PARAGRAPH_BREAK.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= chunk_size:
            pieces.append(paragraph)
            continue
        sentences = _split_sentences(paragraph)
        if len(sentences) <= 1:
            # no usable boundary, kept as one oversized piece
            pieces.append(paragraph)
            continue
        pieces.extend(sentences)
    return pieces


def _pack(pieces: list[str], chunk_size: int) -> list[str]:
    chunks: list[str] = []
    current = ""
    for piece in pieces:
        if not current:
            current = piece
            continue
        candidate = f"{current}\n\n{piece}"
        if len(candidate) <= chunk_size:
            current = candidate
            continue
        chunks.append(current)
        current = piece
    if current:
        chunks.append(current)
    return chunks


def _apply_overlap(chunks: list[str], overlap: int) -> list[str]:
    if overlap <= 0 or len(chunks) <= 1:
        return chunks
    assembled = [chunks[0]]
    for chunk in chunks[1:]:
        previous = assembled[-1]
        tail = previous[max(0, len(previous) - overlap):]
        assembled.append(f"{tail}\n{chunk}")
    return assembled


def split_text_into_chunks(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP) -> list[str]:
    """Split a text into ordered, overlapping chunks.

    Args:
        text (str): The text to split.
        chunk_size (int): Maximum length of a chunk body, floored at MIN_CHUNK_SIZE.
        overlap (int): Number of trailing characters of chunk i-1 prefixed to chunk i.
            Negative values count as 0; values reaching chunk_size are clamped to chunk_size // 2.

    Returns:
        list[str]: The chunks. Empty for blank input. A single sentence longer than
            chunk_size is returned as one oversized chunk.
    """
    chunk_size = max(MIN_CHUNK_SIZE, int(chunk_size))
    overlap = max(0, int(overlap))
    if overlap >= chunk_size:
        overlap = chunk_size // 2

    text = normalize_text(text or "")
    if not text:
        return []
    if len(text) <= chunk_size:
        return [text]

    chunks = _pack(_split_pieces(text, chunk_size), chunk_size)
    return _apply_overlap(chunks, overlap)
