"""Tests for the word-based text chunker."""

import random

import pytest

from conftest import make_text
from docindex.services.chunking import (
    CHUNK_CONFIG,
    CHUNK_CONFIG_OPENAI,
    ChunkingService,
    add_chunk_metadata,
    count_words,
    get_chunk_config,
    split_into_chunks,
)


def _paragraph(word_count: int, prefix: str) -> str:
    return " ".join(f"{prefix}{i}" for i in range(word_count))


def _sentence(word_count: int, prefix: str) -> str:
    return _paragraph(word_count, prefix) + "."


@pytest.fixture
def chunking_service() -> ChunkingService:
    """Chunking service with the small (local/mock) profile."""
    return ChunkingService(CHUNK_CONFIG)


class TestCountWords:
    """Tests for count_words."""

    def test_splits_on_whitespace_runs(self) -> None:
        """Tabs, newlines and repeated spaces separate words."""
        assert count_words("one  two\tthree\n\nfour") == 4

    def test_empty_and_blank(self) -> None:
        """Empty or whitespace-only text has no words."""
        assert count_words("") == 0
        assert count_words("   \n\t ") == 0


class TestChunkConfig:
    """Tests for backend chunk profiles."""

    def test_openai_profile(self) -> None:
        """The cloud backend uses the large profile."""
        assert get_chunk_config("openai") == CHUNK_CONFIG_OPENAI
        assert CHUNK_CONFIG_OPENAI.target_words == 300
        assert CHUNK_CONFIG_OPENAI.min_words == 100
        assert CHUNK_CONFIG_OPENAI.max_words == 450

    def test_other_backends_use_small_profile(self) -> None:
        """Local, mock and unknown backends use the small profile."""
        for name in ("ollama", "mock", None, "something-else"):
            assert get_chunk_config(name) == CHUNK_CONFIG
        assert (CHUNK_CONFIG.target_words, CHUNK_CONFIG.min_words, CHUNK_CONFIG.max_words) == (
            100,
            50,
            150,
        )

    def test_for_backend(self) -> None:
        """ChunkingService.for_backend picks the matching profile."""
        assert ChunkingService.for_backend("openai").config == CHUNK_CONFIG_OPENAI
        assert ChunkingService.for_backend("mock").config == CHUNK_CONFIG


class TestSplitIntoChunks:
    """Tests for split_into_chunks."""

    def test_empty_input(self, chunking_service: ChunkingService) -> None:
        """Empty or whitespace-only text yields no chunks."""
        assert chunking_service.split("") == []
        assert chunking_service.split("  \n\n  ") == []

    def test_short_text_is_single_trimmed_chunk(
        self, chunking_service: ChunkingService
    ) -> None:
        """Text within the target is returned whole and trimmed."""
        assert chunking_service.split("  A short note.\n") == ["A short note."]

    def test_long_text_produces_many_chunks(
        self, chunking_service: ChunkingService
    ) -> None:
        """1000 words with a 100-word target yield at least 8 chunks."""
        chunks = chunking_service.split(make_text(1000))

        assert len(chunks) >= 8
        assert all(chunk.strip() for chunk in chunks)

    def test_chunks_respect_bounds(self, chunking_service: ChunkingService) -> None:
        """Chunks of multi-sentence prose stay between the min and max word counts."""
        chunks = chunking_service.split(make_text(1000))

        for chunk in chunks:
            assert count_words(chunk) <= CHUNK_CONFIG.max_words
            assert count_words(chunk) >= CHUNK_CONFIG.min_words

    def test_order_and_words_preserved(self, chunking_service: ChunkingService) -> None:
        """Joining the chunks gives back every word in the original order."""
        text = make_text(777)
        chunks = chunking_service.split(text)

        assert " ".join(chunks).split() == text.split()

    def test_run_on_sentence_split_by_words(
        self, chunking_service: ChunkingService
    ) -> None:
        """A sentence longer than the max is cut into target-sized windows."""
        text = _paragraph(400, "w")
        chunks = chunking_service.split(text)

        assert len(chunks) == 4
        assert all(count_words(chunk) == 100 for chunk in chunks)
        assert " ".join(chunks).split() == text.split()

    def test_paragraphs_are_packed(self, chunking_service: ChunkingService) -> None:
        """Small paragraphs are grouped until the target is reached."""
        paragraphs = [_paragraph(30, f"p{n}w") for n in range(8)]
        chunks = chunking_service.split("\n\n".join(paragraphs))

        assert len(chunks) == 2
        assert all("\n\n" in chunk for chunk in chunks)
        assert [count_words(chunk) for chunk in chunks] == [120, 120]

    def test_small_tail_merges_into_previous(
        self, chunking_service: ChunkingService
    ) -> None:
        """A trailing chunk under the minimum joins the chunk before it."""
        text = "\n\n".join(
            [_paragraph(60, "a"), _paragraph(60, "b"), _paragraph(10, "c")]
        )
        chunks = chunking_service.split(text)

        assert len(chunks) == 1
        assert count_words(chunks[0]) == 130
        assert chunks[0].endswith(_paragraph(10, "c"))

    def test_openai_profile_chunks(self) -> None:
        """The large profile produces fewer, bigger chunks."""
        chunks = split_into_chunks(make_text(1000), config=CHUNK_CONFIG_OPENAI)

        assert 3 <= len(chunks) <= 4
        assert all(count_words(chunk) <= CHUNK_CONFIG_OPENAI.max_words for chunk in chunks)

    def test_target_override(self) -> None:
        """An explicit target changes the window size for run-on text."""
        chunks = split_into_chunks(_paragraph(200, "w"), target_words=50)

        assert [count_words(chunk) for chunk in chunks] == [50, 50, 50, 50]

    def test_deterministic(self, chunking_service: ChunkingService) -> None:
        """The same input always yields the same chunks."""
        text = make_text(640)
        assert chunking_service.split(text) == chunking_service.split(text)


class TestMixedSizes:
    """Tests for prose mixing short and run-on sentences and paragraphs."""

    def _assert_valid(self, text: str, chunks: list[str], min_words: int) -> None:
        assert " ".join(chunks).split() == text.split()
        if len(chunks) > 1:
            assert all(count_words(chunk) >= min_words for chunk in chunks)

    def test_short_paragraph_before_run_on_paragraph(
        self, chunking_service: ChunkingService
    ) -> None:
        """A 3-word paragraph ahead of a 200-word sentence is not left on its own."""
        text = _sentence(3, "a") + "\n\n" + _sentence(200, "b")

        chunks = chunking_service.split(text)

        assert len(chunks) == 2
        self._assert_valid(text, chunks, CHUNK_CONFIG.min_words)
        assert chunks[0].startswith("a0 a1 a2.")

    def test_short_sentence_before_run_on_sentence(
        self, chunking_service: ChunkingService
    ) -> None:
        """A 30-word sentence ahead of a 200-word sentence joins a full chunk."""
        text = _sentence(30, "a") + " " + _sentence(200, "b")

        chunks = chunking_service.split(text)

        assert len(chunks) == 2
        self._assert_valid(text, chunks, CHUNK_CONFIG.min_words)

    def test_undersized_chunk_between_run_ons(
        self, chunking_service: ChunkingService
    ) -> None:
        """A short sentence squeezed between two run-on sentences is absorbed."""
        text = " ".join(
            [_sentence(200, "a"), _sentence(13, "b"), _sentence(200, "c")]
        )

        chunks = chunking_service.split(text)

        self._assert_valid(text, chunks, CHUNK_CONFIG.min_words)

    @pytest.mark.parametrize(
        ("config", "sizes"),
        [
            (CHUNK_CONFIG, (3, 10, 30, 60, 200)),
            (CHUNK_CONFIG_OPENAI, (3, 10, 30, 60, 200, 600)),
        ],
    )
    def test_seeded_sweep(self, config, sizes: tuple[int, ...]) -> None:
        """Random mixed prose never loses words or yields undersized chunks."""
        rng = random.Random(1234)

        for case in range(500):
            paragraphs = []
            for p in range(rng.randint(1, 6)):
                sentences = [
                    _sentence(rng.choice(sizes), f"c{case}p{p}s{s}w")
                    for s in range(rng.randint(1, 5))
                ]
                paragraphs.append(" ".join(sentences))
            text = "\n\n".join(paragraphs)

            chunks = split_into_chunks(text, config=config)

            self._assert_valid(text, chunks, config.min_words)


class TestAddChunkMetadata:
    """Tests for add_chunk_metadata."""

    def test_metadata_fields(self) -> None:
        """Each chunk gets its index and counts."""
        metadata = add_chunk_metadata(["one two", "three"])

        assert [m.index for m in metadata] == [0, 1]
        assert [m.word_count for m in metadata] == [2, 1]
        assert metadata[0].char_count == len("one two")
        assert metadata[1].text == "three"
