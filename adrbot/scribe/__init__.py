"""
Scribe - Decision Records from Slack Threads

Key Components:
- ThreadResolver: Slack thread to clean conversation text
- RecordGenerator: Schema-constrained LLM extraction
- DocumentWriter: Notion pages with upsert and fallback chain
- RecoverySweeper: Promotes hand-completed error artifacts
- ReactionPipeline: Wires the above to a reaction trigger

Rules:
1. Only the channel's trigger emoji starts a run
2. Every run posts exactly one reply to the thread
3. A failed generation is checkpointed before it is reported
4. Error artifacts are archived only after their record exists
"""

from .thread_resolver import ThreadResolver
from .generator import RecordGenerator
from .document_writer import DocumentWriter, FallbackChain
from .recovery import RecoverySweeper, SweepReport
from .pipeline import ReactionPipeline

__all__ = [
    "ThreadResolver",
    "RecordGenerator",
    "DocumentWriter",
    "FallbackChain",
    "RecoverySweeper",
    "SweepReport",
    "ReactionPipeline",
]
