from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Any, Dict, List, Optional, Tuple, Union

import petl as etl

from csvgraph.errors import CsvGraphUserError
from csvgraph.models.sinks import Sink
from csvgraph.models.sources import Source
from csvgraph.models.table import TableDescriptor
from csvgraph.models.transforms import Transform, TransformContext

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext(TransformContext):
    checkpoints: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)


@dataclass
class Pipeline:
    """
    Linear pipelines only: Source -> Transform* -> Sink*.
    """
    start: Source
    steps: List[Union[Transform, Sink]] = field(default_factory=list)
    descriptor: Optional[TableDescriptor] = None

    def then(self, step: Union[Transform, Sink]) -> "Pipeline":
        if not isinstance(step, (Transform, Sink)):
            raise CsvGraphUserError(
                "E_PIPELINE_STEP",
                "Pipeline.then expects a Transform or Sink.",
                hint="Example: pipe.then(Transform('select', params={...})) or pipe.then(Sink('out.csv')).",
            )

        # Enforce Source -> Transform* -> Sink* mental model: no transforms after a sink.
        if isinstance(step, Transform):
            if any(isinstance(s, Sink) for s in self.steps):
                raise CsvGraphUserError(
                    "E_PIPELINE_ORDER",
                    "A Transform cannot be added after a Sink.",
                    hint="Move the Sink to the end of the pipeline.",
                )

        return Pipeline(self.start, self.steps + [step], self.descriptor)

    def __str__(self) -> str:
        parts = [f"Pipeline(start={self.start.uri})"]
        for s in self.steps:
            parts.append(f"  -> {s}")
        return "\n".join(parts)

    def preflight(self) -> TableDescriptor:
        """
        Validate step ordering and every transform's params against the running descriptor,
        without reading any data rows. Returns the input descriptor.
        """
        descriptor = self.descriptor or self.start.descriptor()
        running: Optional[TableDescriptor] = descriptor
        saw_sink = False
        for i, step in enumerate(self.steps):
            if isinstance(step, Transform):
                if saw_sink:
                    raise CsvGraphUserError(
                        "E_PIPELINE_ORDER",
                        f"Transform '{step.op}' appears after a Sink at step index {i}.",
                        hint="Reorder the pipeline so that all sinks come last.",
                    )
                running = step.output_descriptor(running)
            elif isinstance(step, Sink):
                saw_sink = True
            else:
                raise CsvGraphUserError(
                    "E_PIPELINE_STEP_TYPE",
                    "Pipeline contains an unknown step type.",
                    hint="This should not happen if you only add Transform/Sink via Pipeline.then().",
                )
        return descriptor

    def run(self) -> PipelineContext:
        ctx = PipelineContext(descriptor=self.preflight())
        table = self.start.table()

        for i, step in enumerate(self.steps):
            if isinstance(step, Transform):
                table = step.apply(table, context=ctx)
                ctx.descriptor = step.output_descriptor(ctx.descriptor)
                ctx.checkpoints.append(
                    (
                        "step",
                        {
                            "index": i,
                            "kind": "transform",
                            "op": step.op,
                            "header": list(ctx.descriptor.headers) if ctx.descriptor else [],
                        },
                    )
                )

            elif isinstance(step, Sink):
                started = time.perf_counter()
                step.write(table)
                logger.debug("%s written in %.3fs", step, time.perf_counter() - started)
                ctx.checkpoints.append(
                    (
                        "step",
                        {
                            "index": i,
                            "kind": "sink",
                            "uri": step.uri,
                        },
                    )
                )

        return ctx

    def table(self):
        """The lazy output table of all transforms (sinks are ignored)."""
        ctx = PipelineContext(descriptor=self.preflight())
        table = self.start.table()
        for step in self.steps:
            if isinstance(step, Transform):
                table = step.apply(table, context=ctx)
                ctx.descriptor = step.output_descriptor(ctx.descriptor)
        return table

    def preview(self, n: int = 5) -> List[tuple]:
        """Header plus up to `n` data rows of the output. Reads only what it shows."""
        return list(etl.head(self.table(), n))
