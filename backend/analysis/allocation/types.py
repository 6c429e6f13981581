"""Data types for heating cost allocation."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AllocationConfig:
    """Constants shared by the allocation policies."""

    # Fair policy: how strongly net flow to/from the shared unit tilts its cost
    shared_flow_tilt: float = 0.5
    shared_weight_min: float = 0.5
    shared_weight_max: float = 1.5
    # Fraction of a payer's outside loss spread over the other payers
    outside_subsidy: float = 0.2

    # Practical policy
    position_coef_min: float = 0.7
    position_coef_max: float = 1.3
    area_min_ratio: float = 0.7
    area_max_ratio: float = 2.0


DEFAULT_ALLOCATION_CONFIG = AllocationConfig()


@dataclass
class AllocationRow:
    """One paying unit's bill. Energies in J, costs in the caller's currency."""

    id: str
    name: str
    area_cells: int
    produced_j: float
    comfort_score: float | None
    neighbor_transfer_j: float = 0.0  # positive = received from other payers
    base_cost_j: float = 0.0
    outside_adjustment_j: float = 0.0
    shared_cost_j: float = 0.0
    position_coefficient: float | None = None
    corrected_consumption_j: float | None = None
    raw_billable_j: float = 0.0
    billable_j: float = 0.0
    share_ratio: float = 0.0
    self_pay_cost: float = 0.0
    payment_happiness_score: float = 0.0
    final_cost: float = 0.0


@dataclass
class AllocationMeta:
    base_total_j: float = 0.0
    billable_total_j: float = 0.0


@dataclass
class AllocationComputation:
    rows: list[AllocationRow] = field(default_factory=list)
    meta: AllocationMeta = field(default_factory=AllocationMeta)


def empty_allocation() -> AllocationComputation:
    return AllocationComputation()
