"""Paragraph and sentence aware text chunking.

Splits extracted document text into bounded, ordered chunks sized in words.
Paragraphs (blank-line separated) are packed together up to the configured
ceiling; oversized paragraphs fall back to sentence packing, and oversized
sentences fall back to fixed word windows.
"""

import re
from dataclasses import dataclass

from langchain_text_splitters import RecursiveCharacterTextSplitter

_PARAGRAPH_BOUNDARY = re.compile(r"\n\n+")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class ChunkConfig:
    """Word-based size bounds for chunking."""

    target_words: int
    min_words: int
    max_words: int
    paragraph_separators: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ")


# Small chunks for local models with ~4K token context windows.
# Also the fallback for the mock backend and unknown backends.
CHUNK_CONFIG = ChunkConfig(target_words=100, min_words=50, max_words=150)

# Larger chunks for the cloud backend's 128K context window.
CHUNK_CONFIG_OPENAI = ChunkConfig(target_words=300, min_words=100, max_words=450)


def get_chunk_config(backend_name: str | None = None) -> ChunkConfig:
    """Return the chunk profile for the given backend name."""
    if (backend_name or "").lower() == "openai":
        return CHUNK_CONFIG_OPENAI
    return CHUNK_CONFIG


@dataclass
class ChunkMetadata:
    """A chunk with positional and size metadata."""

    text: str
    index: int
    word_count: int
    char_count: int


def count_words(text: str) -> int:
    """Count whitespace-separated words, ignoring empty tokens."""
    if not text or not text.strip():
        return 0
    return len(text.split())


def split_into_chunks(
    text: str,
    target_words: int | None = None,
    config: ChunkConfig | None = None,
) -> list[str]:
    """
    Split text into chunks of roughly ``target_words`` words.

    Args:
        text: Full document text
        target_words: Aim size in words (defaults to the config's target)
        config: Size bounds (defaults to the conservative profile)

    Returns:
        Ordered list of non-empty chunk texts
    """
    config = config or CHUNK_CONFIG
    target = target_words or config.target_words

    if not text or not text.strip():
        return []

    if count_words(text) <= target:
        return [text.strip()]

    chunks: list[str] = []
    current = ""
    current_words = 0

    paragraphs = [p for p in _PARAGRAPH_BOUNDARY.split(text) if p.strip()]

    for paragraph in paragraphs:
        paragraph_words = count_words(paragraph)

        if current_words > 0 and current_words + paragraph_words > config.max_words:
            if current_words >= config.min_words:
                chunks.append(current.strip())
                current = ""
                current_words = 0

        if paragraph_words > target:
            if current_words >= config.min_words:
                chunks.append(current.strip())
            elif current.strip():
                paragraph = f"{current}\n\n{paragraph}"
            pieces = _split_large_paragraph(paragraph, target, config)
            # An undersized last piece stays open for the following paragraphs
            current = _pop_small_tail(pieces, config.min_words)
            current_words = count_words(current)
            chunks.extend(pieces)
            continue

        current = f"{current}\n\n{paragraph}" if current else paragraph
        current_words += paragraph_words

        if current_words >= target:
            chunks.append(current.strip())
            current = ""
            current_words = 0

    if current.strip():
        chunks.append(current.strip())

    return _merge_undersized([c for c in chunks if c.strip()], config.min_words)


def _split_large_paragraph(
    paragraph: str,
    target_words: int,
    config: ChunkConfig,
) -> list[str]:
    """Split one oversized paragraph by sentences, then by words."""
    chunks: list[str] = []
    current = ""
    current_words = 0

    sentences = [s for s in _SENTENCE_BOUNDARY.split(paragraph) if s.strip()]

    for sentence in sentences:
        sentence_words = count_words(sentence)

        if sentence_words > config.max_words:
            if current_words >= config.min_words:
                chunks.append(current.strip())
            separators = config.paragraph_separators
            if current_words < config.min_words and current.strip():
                # Word windows only, so the lead-in stays with the first window
                sentence = f"{current} {sentence}"
                separators = ()
            windows = _split_by_words(sentence, target_words, separators)
            current = _pop_small_tail(windows, config.min_words)
            current_words = count_words(current)
            chunks.extend(windows)
        elif current_words + sentence_words > config.max_words:
            if current_words >= config.min_words:
                chunks.append(current.strip())
                current = sentence
                current_words = sentence_words
            else:
                current = f"{current} {sentence}"
                current_words += sentence_words
        else:
            current = f"{current} {sentence}" if current else sentence
            current_words += sentence_words

            if current_words >= target_words:
                chunks.append(current.strip())
                current = ""
                current_words = 0

    if current.strip():
        chunks.append(current.strip())

    return chunks


def _pop_small_tail(pieces: list[str], min_words: int) -> str:
    """Remove and return the last piece if it is undersized and not alone."""
    if len(pieces) > 1 and count_words(pieces[-1]) < min_words:
        return pieces.pop()
    return ""


def _merge_undersized(chunks: list[str], min_words: int) -> list[str]:
    """Fold chunks under ``min_words`` into a neighbour.

    Undersized chunks join the chunk before them; a leading one absorbs the
    chunks after it until it reaches the minimum. A lone chunk is kept as is.
    """
    merged: list[str] = []
    for chunk in chunks:
        if merged and (
            count_words(chunk) < min_words or count_words(merged[-1]) < min_words
        ):
            merged[-1] = f"{merged[-1]}\n\n{chunk}"
        else:
            merged.append(chunk)
    return merged


def _split_by_words(
    sentence: str,
    target_words: int,
    separators: tuple[str, ...] = (),
) -> list[str]:
    """Cut a run-on sentence into windows of at most ``target_words`` words."""
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=target_words,
        chunk_overlap=0,
        length_function=count_words,
        separators=[*separators, " "],
        keep_separator="end",
    )
    # Collapse newlines and tabs so the single-space separator sees every word
    normalized = " ".join(sentence.split())
    return [piece.strip() for piece in splitter.split_text(normalized) if piece.strip()]


def add_chunk_metadata(chunks: list[str]) -> list[ChunkMetadata]:
    """Attach index, word count and character count to each chunk."""
    return [
        ChunkMetadata(
            text=chunk,
            index=index,
            word_count=count_words(chunk),
            char_count=len(chunk),
        )
        for index, chunk in enumerate(chunks)
    ]


class ChunkingService:
    """Split document text into chunks using a backend-specific profile."""

    def __init__(self, config: ChunkConfig | None = None) -> None:
        self.config = config or CHUNK_CONFIG

    @classmethod
    def for_backend(cls, backend_name: str | None) -> "ChunkingService":
        """Create a service using the chunk profile of the named backend."""
        return cls(get_chunk_config(backend_name))

    def split(self, text: str, target_words: int | None = None) -> list[str]:
        """Split text into ordered chunk texts."""
        return split_into_chunks(text, target_words=target_words, config=self.config)
