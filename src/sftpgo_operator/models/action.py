"""
Reconciliation actions.

An Action is the terminal instruction of one reconcile attempt: either wait
for the next change of the resource, or revisit it after a delay.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Action:
    """What the driver should do with a resource after a reconcile attempt."""

    requeue_after: float | None = None

    @classmethod
    def await_change(cls) -> "Action":
        """Do nothing until the resource changes again."""
        return cls(requeue_after=None)

    @classmethod
    def requeue(cls, seconds: float) -> "Action":
        """Reconcile the resource again after ``seconds``."""
        if seconds <= 0:
            raise ValueError(f"Requeue delay must be positive, got {seconds}")
        return cls(requeue_after=float(seconds))

    @property
    def is_requeue(self) -> bool:
        return self.requeue_after is not None
