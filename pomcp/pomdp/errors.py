"""
Exceptions raised by the online planner.
"""


class PlanningError(RuntimeError):
    """Base class for failures surfaced to the planner's caller."""


class BeliefDepletionError(PlanningError):
    """
    No particle consistent with the real observation could be produced.

    Raised only after reinvigoration has been attempted; the episode cannot
    continue from a degenerate belief.
    """

    def __init__(self, action: int, observation: int, attempts: int):
        self.action = action
        self.observation = observation
        self.attempts = attempts
        super().__init__(
            f"Belief depleted after action {action}, observation {observation} "
            f"({attempts} reinvigoration attempts)"
        )
