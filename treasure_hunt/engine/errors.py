"""Error taxonomy for grid validation, solving and job bookkeeping.

Each error subclasses the builtin the rest of the codebase already catches:
validation problems are ValueErrors, unknown ids are KeyErrors, solver
faults are RuntimeErrors.
"""


class GridValidationError(ValueError):
    """Malformed or out-of-range grid request. No job is created."""


class JobNotFoundError(KeyError):
    """Unknown solve job id."""

    def __init__(self, job_id: int) -> None:
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Solve {self.job_id} not found."


class InvalidTransitionError(ValueError):
    """Illegal solve job status change."""


class SolverFault(RuntimeError):
    """Internal computation failure during a solve."""


class InternalInvariantViolation(SolverFault):
    """The solver was handed input that a valid Grid can never produce."""


class SolveCancelled(Exception):
    """Raised at a tier checkpoint once cancellation has been requested.

    Not an error: the job ends Cancelled, never Failed.
    """
