"""
Processor abstraction for the bundle pipeline.

Processors are typed stages: each accepts one frame type and returns the
next. A processor signals failure by raising; the executor turns the
exception into a fatal ErrorFrame and stops.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .context import PipelineContext
    from .frames import Frame

logger = logging.getLogger(__name__)


class Processor(ABC):
    """
    Base class for all processors.

    Subclasses must implement:
    - name: Unique processor identifier
    - process(): The transformation logic

    Set ``accepts`` to the frame types a processor handles; any other frame
    passes through unchanged.
    """

    accepts: tuple[type, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this processor, used in logging and error reports."""
        ...

    @abstractmethod
    async def process(self, frame: Frame, ctx: PipelineContext) -> Frame | None:
        """
        Transform input frame.

        Returns:
            Frame: Continue with this frame
            None: Stop pipeline (frame consumed)

        Raises:
            Exception: Becomes a fatal ErrorFrame
        """
        ...

    def handles(self, frame: Frame) -> bool:
        return not self.accepts or isinstance(frame, self.accepts)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
