"""Climate models consuming the emissions time series after a run."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class ClimateModel(ABC):
    """Post-run consumer of the emissions artifact."""

    @abstractmethod
    def run(self, artifact_path: str) -> None:
        """
        Run the climate model.

        Args:
            artifact_path: CSV of total emissions by gas (rows) and year (columns)
        """


class NullClimateModel(ClimateModel):
    """Climate model that does nothing."""

    def run(self, artifact_path: str) -> None:
        logger.debug("No climate model configured; emissions written to %s", artifact_path)


class FunctionClimateModel(ClimateModel):
    """Adapter running any callable on the emissions artifact."""

    def __init__(self, func: Callable[[str], Any]):
        self.func = func
        self.result: Optional[Any] = None

    def run(self, artifact_path: str) -> None:
        logger.info("Running climate model on %s", artifact_path)
        self.result = self.func(artifact_path)
