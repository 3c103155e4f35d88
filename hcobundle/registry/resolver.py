"""
Digest Resolver.

Turns mutable image references into content-addressed ones and records
every resolution in a RelatedImages accumulator.
"""
from __future__ import annotations

import logging

from hcobundle.errors import DigestMissing, UnpinnedImageReference

from .base import RegistryInspector
from .images import ImageReference, PullspecRegex, RelatedImages

logger = logging.getLogger(__name__)


class DigestResolver:
    """
    Resolves ``repo:tag`` into ``repo@sha256:...``.

    Resolution is idempotent: a reference that is already content-addressed
    is returned unchanged without contacting the registry. Results are
    cached per reference, which is safe because a resolved reference never
    changes.

    Every successful call appends its result to the accumulator, duplicates
    included.

    Example:
        images = RelatedImages()
        resolver = DigestResolver(SkopeoInspector(), accumulator=images)
        pinned = await resolver.resolve(ImageReference.parse("quay.io/kubevirt/virt-api:v0.34.0"))
        str(pinned)  # quay.io/kubevirt/virt-api@sha256:...
    """

    def __init__(
        self,
        inspector: RegistryInspector,
        accumulator: RelatedImages | None = None,
    ):
        self._inspector = inspector
        self._accumulator = accumulator if accumulator is not None else RelatedImages()
        self._cache: dict[str, ImageReference] = {}

    @property
    def accumulator(self) -> RelatedImages:
        return self._accumulator

    async def resolve(self, image: ImageReference | str) -> ImageReference:
        """
        Resolve an image reference to its digest form.

        Raises:
            RegistryUnavailable: Inspection could not complete
            DigestMissing: The registry metadata has no Digest field
            UnpinnedImageReference: The registry returned a malformed digest
        """
        if isinstance(image, str):
            image = ImageReference.parse(image)

        if image.is_pinned:
            resolved = image
        else:
            key = str(image)
            resolved = self._cache.get(key)
            if resolved is None:
                resolved = await self._inspect(image)
                self._cache[key] = resolved

        self._accumulator.append(resolved)
        return resolved

    async def _inspect(self, image: ImageReference) -> ImageReference:
        logger.info(f"[{self._inspector.name}] Resolving digest for {image}")
        metadata = await self._inspector.inspect(image)

        digest = metadata.get("Digest")
        if not digest:
            raise DigestMissing(f"No Digest in registry metadata for {image}", stage="resolve")
        if not PullspecRegex.DIGEST.match(digest):
            raise UnpinnedImageReference(
                f"Registry returned a malformed digest for {image}: {digest!r}",
                stage="resolve",
            )

        resolved = image.with_digest(digest)
        logger.debug(f"Resolved {image} -> {resolved}")
        return resolved
