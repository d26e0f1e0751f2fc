"""Progress aggregation across concurrently running pipeline branches."""

from collections.abc import Callable
from dataclasses import dataclass, field

ProgressListener = Callable[[float], None]


@dataclass(frozen=True)
class BranchProgress:
    """A branch reports its fractional completion."""

    branch: str
    fraction: float


@dataclass(frozen=True)
class BranchCompleted:
    """A branch reports that it has finished."""

    branch: str


ProgressMessage = BranchProgress | BranchCompleted


@dataclass
class ProgressChannel:
    """Per-branch sender bound to an aggregator."""

    branch: str
    aggregator: "ProgressAggregator"

    def report(self, fraction: float) -> None:
        """Send a fractional completion update."""
        self.aggregator.receive(BranchProgress(self.branch, fraction))

    def complete(self) -> None:
        """Mark this branch as finished."""
        self.aggregator.receive(BranchCompleted(self.branch))


@dataclass
class ProgressAggregator:
    """Blends branch fractions into one non-decreasing value in [0, 1].

    Every registered branch carries equal weight. Subscribers are only
    notified when the combined value increases, so the final ``1.0`` is
    published exactly once.
    """

    _fractions: dict[str, float] = field(default_factory=dict)
    _listeners: list[ProgressListener] = field(default_factory=list)
    value: float = 0.0

    def channel(self, branch: str) -> ProgressChannel:
        """Register a branch and return its channel."""
        if branch in self._fractions:
            raise ValueError(f"Branch already registered: {branch}")
        self._fractions[branch] = 0.0
        return ProgressChannel(branch=branch, aggregator=self)

    def subscribe(self, listener: ProgressListener) -> None:
        """Register a callback for combined progress updates."""
        self._listeners.append(listener)

    def receive(self, message: ProgressMessage) -> None:
        """Apply a branch message and republish the combined value."""
        if message.branch not in self._fractions:
            raise ValueError(f"Unknown branch: {message.branch}")
        if isinstance(message, BranchCompleted):
            fraction = 1.0
        else:
            fraction = min(max(message.fraction, 0.0), 1.0)
        current = self._fractions[message.branch]
        self._fractions[message.branch] = max(current, fraction)
        self._publish()

    def _publish(self) -> None:
        combined = sum(self._fractions.values()) / len(self._fractions)
        if combined <= self.value:
            return
        self.value = combined
        for listener in self._listeners:
            listener(combined)
