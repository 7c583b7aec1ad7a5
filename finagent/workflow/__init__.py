"""Workflow components: sequential composition and stream relaying"""

from .relay import StreamRelay
from .sequential import DEFAULT_HANDOFF_TEMPLATE, SequentialWorkflowAgent, build_sequential

__all__ = [
    "DEFAULT_HANDOFF_TEMPLATE",
    "SequentialWorkflowAgent",
    "StreamRelay",
    "build_sequential",
]
