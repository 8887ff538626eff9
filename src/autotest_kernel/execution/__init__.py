from .context import CancellationToken, SchedulerContext, build_scheduler_context, reloading_context_factory
from .runner import ExecutionLoop, ScheduleEmptyError, is_fatal_failure
from .worker import FinalStatus, ForcedStopHandler, WorkerHandle, WorkerSupervisor, run_all

__all__ = [
    "CancellationToken",
    "ExecutionLoop",
    "FinalStatus",
    "ForcedStopHandler",
    "ScheduleEmptyError",
    "SchedulerContext",
    "WorkerHandle",
    "WorkerSupervisor",
    "build_scheduler_context",
    "is_fatal_failure",
    "reloading_context_factory",
    "run_all",
]
