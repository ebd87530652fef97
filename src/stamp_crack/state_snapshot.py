from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SearchSnapshot:
    """Immutable view of search progress, published for the UI."""

    state_version: int
    complete: bool
    seeds_total: int
    seeds_checked: int
    current_seed: int
    upper_seed: int
    lower_seed: int
    workers: int
    elapsed: float
    candidates: int = 0
    false_positives: int = 0
    found_seed: int | None = None

    @property
    def percent_complete(self) -> float:
        if self.seeds_total == 0:
            return 100.0
        return self.seeds_checked / self.seeds_total * 100

    @property
    def seeds_per_second(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.seeds_checked / self.elapsed
