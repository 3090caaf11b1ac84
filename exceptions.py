class RosterError(ValueError):
    """Account roster is missing, unreadable or too small to transfer between."""


class WorkloadNotInitializedError(RuntimeError):
    """A workload module was used before the harness initialized it."""
