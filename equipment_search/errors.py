"""
Exception types raised by the equipment search engine.

Failures are scoped to the unit of work that caused them: one query blob,
one template, or one category load. Callers catch the narrowest type that
applies and keep processing the rest of the batch.
"""


class MalformedDescriptorData(ValueError):
    """Descriptor payload has a bad encoding or a non-multiple byte length."""


class LoadError(Exception):
    """A category's reference catalogue could not be loaded."""

    def __init__(self, category: str, message: str):
        super().__init__(message)
        self.category = category


class ArtifactMissing(LoadError):
    """No cache artifact exists for the category."""


class ArtifactMalformed(LoadError):
    """The cache artifact exists but its structure is unusable."""


class UnknownCategory(LoadError):
    """The category is not part of the configured category set."""


class InvalidRequest(ValueError):
    """The request body is missing required fields or has the wrong shape."""
