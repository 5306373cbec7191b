from tandem.tasks.scheduler import TaskOutcome, TaskResolution, TaskScheduler
from tandem.tasks.ticker import TaskTicker

__all__ = ["TaskOutcome", "TaskResolution", "TaskScheduler", "TaskTicker"]
