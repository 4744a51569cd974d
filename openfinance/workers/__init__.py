"""Workers package: orchestration of primary store and mirror writes."""

from .sync_orchestrator import MirrorStepResult, SyncOrchestrator  # noqa: F401
