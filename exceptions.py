"""Error taxonomy for the translation pipeline."""


class TranslationPipelineError(Exception):
    """Base class for all pipeline errors."""


class ExtractionError(TranslationPipelineError):
    """The extraction oracle failed or returned something that is not a Document."""


class OracleError(TranslationPipelineError):
    """The oracle was unreachable or its response could not be decoded."""


class StructuralMismatchError(TranslationPipelineError):
    """A translated page does not have the same shape as its source page."""


class CardinalityError(TranslationPipelineError):
    """The number of translated units differs from the number sent."""

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Translation returned {received} text segments for {expected} sent"
        )


class StorageError(TranslationPipelineError):
    """Upload or delete against the storage collaborator failed."""


class RenderingError(TranslationPipelineError):
    """An output document could not be produced."""
