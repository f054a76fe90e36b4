"""
Knowledge feature: fixed-width overlapping text chunker.

Each chunk after the first starts with the last `overlap` characters of the
previous one, so a sentence cut at a boundary is still whole in one of the
two chunks. Dropping those repeated prefixes and concatenating the chunks
gives back the original text.
"""

from dataclasses import dataclass

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


@dataclass(frozen=True)
class Chunk:
    index: int
    text: str
    start: int  # offset of text[0] in the source
    overlap: int  # leading characters shared with the previous chunk

    @property
    def length(self) -> int:
        return len(self.text)

    @property
    def fresh_text(self) -> str:
        """The part of this chunk not already covered by its predecessor."""
        return self.text[self.overlap:]


def split_text(
    text: str,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[Chunk]:
    """Split text into windows of `size` characters advancing by `size - overlap`.

    Every chunk except the last is exactly `size` long.

    Raises:
        ValueError: If size <= 0, overlap < 0, or overlap >= size.
    """
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    if overlap < 0 or overlap >= size:
        raise ValueError(f"Chunk overlap must be in [0, {size}), got {overlap}")

    step = size - overlap
    chunks: list[Chunk] = []
    start = 0
    while start < len(text):
        end = min(start + size, len(text))
        chunks.append(
            Chunk(
                index=len(chunks),
                text=text[start:end],
                start=start,
                overlap=overlap if chunks else 0,
            )
        )
        if end == len(text):
            break
        start += step
    return chunks
