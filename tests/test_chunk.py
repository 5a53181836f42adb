import pytest

from etl.chunk import join_chunks, split_text_into_chunks


def words(n, prefix="wd"):
    return " ".join(f"{prefix}{i:03d}" for i in range(n))


class TestSplitTextIntoChunks:
    def test_short_text_is_one_chunk(self):
        chunks = split_text_into_chunks("hola mundo", chunk_size=1000, chunk_overlap=200)

        assert len(chunks) == 1
        assert chunks[0].text == "hola mundo"
        assert chunks[0].overlap_words == 0

    def test_empty_text_has_no_chunks(self):
        assert split_text_into_chunks("   \n ") == []

    def test_chunks_respect_size(self):
        text = words(200)  # 6 chars per word with its separator

        chunks = split_text_into_chunks(text, chunk_size=60, chunk_overlap=0)

        assert len(chunks) == 20
        assert all(len(c.words) == 10 for c in chunks)
        assert [c.index for c in chunks] == list(range(20))

    def test_overlap_repeats_trailing_words(self):
        chunks = split_text_into_chunks(words(40), chunk_size=60, chunk_overlap=12)

        for previous, current in zip(chunks, chunks[1:]):
            assert current.overlap_words == 2
            assert current.words[:2] == previous.words[-2:]

    def test_join_rebuilds_source(self):
        text = words(137)

        for overlap in (0, 7, 30, 500):
            chunks = split_text_into_chunks(text, chunk_size=50, chunk_overlap=overlap)
            assert join_chunks(chunks) == text

    def test_no_trailing_chunk_made_only_of_overlap(self):
        chunks = split_text_into_chunks(words(20), chunk_size=60, chunk_overlap=12)

        assert all(c.new_words for c in chunks)

    def test_overlap_larger_than_chunk_still_progresses(self):
        chunks = split_text_into_chunks(words(30), chunk_size=20, chunk_overlap=1000)

        assert all(c.new_words for c in chunks)
        assert join_chunks(chunks) == words(30)

    @pytest.mark.parametrize("size, overlap", [(0, 0), (-1, 0), (10, -1)])
    def test_invalid_arguments(self, size, overlap):
        with pytest.raises(ValueError):
            split_text_into_chunks("a b c", chunk_size=size, chunk_overlap=overlap)
