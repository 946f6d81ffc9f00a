from . import operations, preferences, reflections, scheduler, tasks

__all__ = ["operations", "preferences", "reflections", "scheduler", "tasks"]
