"""
Order pipeline: one generate/route/encode/publish run per trigger tick.
"""

from .order_pipeline import (
    TERMINAL_STATES,
    OrderPipeline,
    PipelineRun,
    Route,
    RunState,
    build_routes,
)

__all__ = [
    "OrderPipeline",
    "PipelineRun",
    "Route",
    "RunState",
    "TERMINAL_STATES",
    "build_routes",
]
