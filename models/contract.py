"""
Contract text models - paragraphs and chunks.
"""

from pydantic import Field, ConfigDict

from .base import CamelModel

OVERLAP_ID_PREFIX = "overlap_"


class Paragraph(CamelModel):
    """A semantic paragraph of the contract. Ids are p1..pN in document order."""
    model_config = ConfigDict(frozen=True)

    id: str
    text: str

    @property
    def is_overlap(self) -> bool:
        """Synthetic context paragraph carried over from the previous chunk."""
        return self.id.startswith(OVERLAP_ID_PREFIX)


class Chunk(CamelModel):
    """
    Contiguous paragraphs sent to the model in one call.

    May start with a synthetic overlap paragraph holding the trailing
    sentences of the previous chunk.
    """
    id: str
    paragraphs: list[Paragraph] = Field(default_factory=list)
    token_estimate: int = 0
    has_overlap_prefix: bool = False

    @property
    def content_paragraphs(self) -> list[Paragraph]:
        """Paragraphs of real contract content."""
        return [p for p in self.paragraphs if not p.is_overlap]

    @property
    def content_ids(self) -> set[str]:
        return {p.id for p in self.content_paragraphs}
