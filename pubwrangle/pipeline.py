"""
Ordered, named chains of table transforms.

A step is any callable taking a :class:`~pubwrangle.table.Table` and
returning a new one. ``Pipeline.run`` either returns the final table or
raises :class:`~pubwrangle.errors.PipelineError` naming the step that failed;
intermediate tables are never handed back on failure.
"""

import logging
import time
from typing import Callable, List, Tuple

from .errors import PipelineError
from .table import Table

logger = logging.getLogger(__name__)

Step = Callable[[Table], Table]


class Pipeline:

    def __init__(self, steps=None, name: str = "pipeline"):
        self.name = name
        self._steps: List[Tuple[str, Step]] = []
        for step in steps or []:
            if isinstance(step, tuple):
                self.add(*step)
            else:
                self.add(getattr(step, '__name__', repr(step)), step)

    def add(self, label: str, step: Step) -> "Pipeline":
        """Append a step; returns ``self`` so calls can be chained."""
        if not callable(step):
            raise TypeError(f"Pipeline step '{label}' is not callable")
        self._steps.append((label, step))
        return self

    @property
    def labels(self):
        return [label for label, _ in self._steps]

    def __len__(self):
        return len(self._steps)

    def run(self, table: Table) -> Table:
        logger.info(f"Running {self.name} ({len(self._steps)} steps) on {len(table)} rows")
        current = table
        for label, step in self._steps:
            started = time.perf_counter()
            try:
                result = step(current)
            except Exception as e:
                logger.error(f"{self.name}: step '{label}' failed: {e}")
                raise PipelineError(label, e) from e
            if not isinstance(result, Table):
                raise PipelineError(label, TypeError(f"returned {type(result).__name__}, not Table"))
            logger.debug(
                f"{self.name}: '{label}' {len(current)} -> {len(result)} rows "
                f"in {time.perf_counter() - started:.3f}s"
            )
            current = result
        return current

    __call__ = run
