"""Centralised simulation tunables.

Every magic number that controls the grid physics and the run lives here.
Create a custom ``SimConfig`` to tweak values for testing::

    cfg = SimConfig(width=20, height=12, dt=2.0)
    sim = HeatSimulation(cfg)
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SimConfig:
    """All simulation tunables, grouped by category."""

    # --- Grid geometry ---
    cell_size_m: float = 0.25  # edge length of one cell
    slab_depth_m: float = 2.7  # extrudes the 2D grid into 3D volume

    # --- Numeric guards ---
    capacity_floor_j_per_k: float = 1e-9
    harmonic_mean_eps: float = 1e-12

    # --- Emitter control ---
    # Fraction of the midpoint error a unit's emitters may close per step
    emitter_budget_gain: float = 0.12

    # --- Materials ---
    default_material_id: str = "air"
    outside_material_id: str = "outside"

    # --- Grid setup ---
    width: int = 140
    height: int = 90
    min_side: int = 10
    max_side: int = 500
    init_temp_c: float = 18.0

    # --- Run ---
    dt: float = 1.0  # seconds per tick
    start_day_time_min: int = 0
    end_after_s: float | None = 30 * 3600.0  # None = run forever

    # --- Outside temperature ---
    # "constant", "series" (hourly values) or "daily" (sinusoid between min/max)
    outside_temp_mode: str = "constant"
    outside_temp_c: float = 0.0
    outside_temp_series: tuple[float, ...] = (0.0, -1.0, -2.0, -2.0, -1.0, -2.0, -1.0, 0.0, 1.0, 4.0, 8.0, 10.0, 10.0, 11.0)
    outside_daily_min_c: float = -4.0
    outside_daily_max_c: float = 4.0

    @property
    def cell_volume_m3(self) -> float:
        return self.cell_size_m * self.cell_size_m * self.slab_depth_m

    @property
    def edge_area_m2(self) -> float:
        return self.cell_size_m * self.slab_depth_m

    @property
    def edge_length_m(self) -> float:
        return self.cell_size_m


DEFAULT = SimConfig()
