"""
Capture-infer-render pipeline.

- `pipeline.controller`: single-flight loop controller
- `pipeline.engine`: wiring of session, controller thread and display
"""

from .controller import CycleOutcome, LoopController, LoopState, LoopStats

__all__ = [
    "CycleOutcome",
    "LoopController",
    "LoopState",
    "LoopStats",
]
