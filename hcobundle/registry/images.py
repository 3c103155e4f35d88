"""
Image references and the related-images accumulator.

An ImageReference is either mutable (``registry/repo:tag``) or
content-addressed (``registry/repo@sha256:...``). Only content-addressed
references may end up in a bundle's related images.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)


class PullspecRegex:
    """Regular expressions for image pull specs."""

    _alnum = r"[a-zA-Z0-9]"
    _name = r"[a-zA-Z0-9\-._]"
    _base16 = r"[a-fA-F0-9]"

    # Starts and ends with an alphanumeric character
    _basic_name = rf"(?:(?:{_alnum}{_name}*{_alnum})|{_alnum})"

    _named_tag = rf"(?::{_basic_name})"
    _digest = rf"(?:@sha256:{_base16}{{64}})"
    _tag = rf"(?:{_named_tag}|{_digest})"

    # A registry contains at least one dot (or is localhost), optional port
    _registry = rf"(?:(?:{_alnum}{_name}*\.{_name}*{_alnum}|localhost)(?::\d+)?)"

    _pullspec = rf"{_registry}/(?:{_basic_name}/)*{_basic_name}{_tag}?"

    FULL = re.compile(rf"^{_pullspec}$")
    DIGEST = re.compile(rf"^sha256:{_base16}{{64}}$")

    # A descriptor line declaring a container image, as emitted by generators
    IMAGE_LINE = re.compile(r"^ *image: ([a-zA-Z0-9/.:@\-]+)$", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class ImageReference:
    """
    A container image reference.

    Attributes:
        repository: Registry and repository path (e.g. "quay.io/kubevirt/virt-api")
        tag: Mutable tag, None for digest references
        digest: Content digest ("sha256:..."), None until resolved
    """

    repository: str
    tag: str | None = None
    digest: str | None = None

    @classmethod
    def parse(cls, pullspec: str) -> ImageReference:
        """
        Parse a pull spec into an ImageReference.

        A digest wins over a tag: ``repo:tag@sha256:...`` keeps only the digest.

        Raises:
            ValueError: If the pull spec is empty or malformed
        """
        text = pullspec.strip()
        if not text or any(ch.isspace() for ch in text):
            raise ValueError(f"Invalid image reference: {pullspec!r}")

        repository, has_digest, digest = text.partition("@")
        if has_digest and not digest:
            raise ValueError(f"Invalid image reference (empty digest): {pullspec!r}")

        tag: str | None = None
        slash = repository.rfind("/")
        colon = repository.rfind(":")
        if colon > slash:
            tag = repository[colon + 1:] or None
            repository = repository[:colon]

        if not repository or repository.endswith("/"):
            raise ValueError(f"Invalid image reference: {pullspec!r}")

        if has_digest:
            return cls(repository=repository, digest=digest)
        return cls(repository=repository, tag=tag)

    @property
    def is_pinned(self) -> bool:
        """True when the reference is content-addressed."""
        return bool(self.digest) and bool(PullspecRegex.DIGEST.match(self.digest))

    @property
    def registry(self) -> str:
        """Registry host, defaulting to docker.io like the docker CLI does."""
        first, sep, _ = self.repository.partition("/")
        if sep and ("." in first or ":" in first or first == "localhost"):
            return first
        return "docker.io"

    @property
    def path(self) -> str:
        """Repository path without the registry host."""
        first, sep, rest = self.repository.partition("/")
        if sep and ("." in first or ":" in first or first == "localhost"):
            return rest
        return self.repository

    @property
    def prefix(self) -> str:
        """Everything before the last path segment (e.g. "quay.io/kubevirt")."""
        return self.repository.rpartition("/")[0]

    @property
    def name(self) -> str:
        """Last path segment of the repository."""
        return self.repository.rpartition("/")[2]

    @property
    def reference(self) -> str:
        """The tag or digest part, as sent to a registry."""
        return self.digest or self.tag or "latest"

    def with_digest(self, digest: str) -> ImageReference:
        """Create the content-addressed form of this reference."""
        return replace(self, tag=None, digest=digest)

    def sibling(self, name: str) -> ImageReference:
        """
        Same registry prefix and tag, different image name.

        A digest is specific to one image, so it is never carried over.
        """
        prefix = self.prefix
        repository = f"{prefix}/{name}" if prefix else name
        return ImageReference(repository=repository, tag=self.tag)

    def __str__(self) -> str:
        if self.digest:
            return f"{self.repository}@{self.digest}"
        if self.tag:
            return f"{self.repository}:{self.tag}"
        return self.repository


def is_valid_pullspec(text: str) -> bool:
    """Check text against the strict registry/repo[:tag|@digest] pattern."""
    return bool(PullspecRegex.FULL.match(text))


def find_image_lines(document_text: str) -> list[str]:
    """Return the values of every ``image:`` line in a YAML document."""
    return PullspecRegex.IMAGE_LINE.findall(document_text)


class RelatedImages:
    """
    Append-only accumulator of resolved image references.

    Insertion order is kept and duplicates are allowed; de-duplication is the
    merger's job. Appends are guarded by a lock so builders may run
    concurrently if a caller chooses to.

    Usage:
        images = RelatedImages()
        resolver = DigestResolver(inspector, accumulator=images)
        ...
        merge(descriptors, overrides, metadata, related_images=images.snapshot())
    """

    def __init__(self, initial: Iterable[ImageReference] = ()):
        self._lock = threading.Lock()
        self._images: list[ImageReference] = list(initial)

    def append(self, image: ImageReference) -> None:
        with self._lock:
            self._images.append(image)
        logger.debug(f"Recorded related image {image}")

    def extend(self, images: Iterable[ImageReference]) -> None:
        images = list(images)
        with self._lock:
            self._images.extend(images)

    def snapshot(self) -> tuple[ImageReference, ...]:
        """Current contents in insertion order."""
        with self._lock:
            return tuple(self._images)

    def unique(self) -> list[ImageReference]:
        """Contents de-duplicated by exact equality, first-seen order kept."""
        return list(dict.fromkeys(self.snapshot()))

    def __iter__(self) -> Iterator[ImageReference]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._images)

    def __repr__(self) -> str:
        return f"RelatedImages(count={len(self)})"
