"""Step profiling.

A ``StepProfiler`` is created and owned by the caller and passed into
``step_world``. Without one the step runs untimed; there is no global
profiling state.
"""

import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

STEP_PHASES: tuple[str, ...] = (
    "optimise_and_reset",
    "conduction",
    "apply_diffusion",
    "pre_emitter_control",
    "apply_fixed_emitters",
    "build_emitter_requests",
    "compute_power_scales",
    "apply_unit_emitters",
    "post_emitter_metrics",
    "post_emitter_state",
    "commit",
)


@dataclass
class PhaseStats:
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, duration_ms: float) -> None:
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)


@dataclass
class PhaseReport:
    total_ms: float
    avg_ms: float
    max_ms: float
    share_pct: float


@dataclass
class ProfilingReport:
    steps: int
    total_ms: float
    avg_step_ms: float
    max_step_ms: float
    approx_ticks_per_sec: float
    avg_emitter_requests: float
    max_emitter_requests: int
    phases: dict[str, PhaseReport]

    def summary(self) -> str:
        phase_summary = ", ".join(f"{name}={p.avg_ms:.3f}ms ({p.share_pct:.1f}%)" for name, p in self.phases.items())
        return (
            f"steps={self.steps}, avg={self.avg_step_ms:.3f}ms, max={self.max_step_ms:.3f}ms, "
            f"approx={self.approx_ticks_per_sec:.1f} tick/s, "
            f"emitReq(avg/max)={self.avg_emitter_requests:.1f}/{self.max_emitter_requests}; {phase_summary}"
        )


def _new_phases() -> dict[str, PhaseStats]:
    return {name: PhaseStats() for name in STEP_PHASES}


@dataclass
class StepProfiler:
    """Rolling-window timing of step phases.

    Every ``report_every_steps`` steps a ``ProfilingReport`` is built from
    the window, stored as ``last_report`` (and logged if ``log_reports``),
    and a fresh window starts.
    """

    report_every_steps: int = 500
    log_reports: bool = True
    last_report: ProfilingReport | None = None

    _window_steps: int = field(default=0, repr=False)
    _window_total_ms: float = field(default=0.0, repr=False)
    _window_max_step_ms: float = field(default=0.0, repr=False)
    _window_requests_sum: int = field(default=0, repr=False)
    _window_requests_max: int = field(default=0, repr=False)
    _window_phases: dict[str, PhaseStats] = field(default_factory=_new_phases, repr=False)
    _step_start: float = field(default=0.0, repr=False)
    _phase_start: float = field(default=0.0, repr=False)
    _step_phases: dict[str, float] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.report_every_steps = max(1, int(self.report_every_steps))

    def start_step(self) -> None:
        now = time.perf_counter()
        self._step_start = now
        self._phase_start = now
        self._step_phases = {}

    def mark(self, phase: str) -> None:
        """Close the phase that started at the previous mark."""
        now = time.perf_counter()
        self._step_phases[phase] = self._step_phases.get(phase, 0.0) + (now - self._phase_start) * 1000
        self._phase_start = now

    def finish_step(self, emitter_requests: int) -> None:
        step_ms = (time.perf_counter() - self._step_start) * 1000
        self._window_steps += 1
        self._window_total_ms += step_ms
        self._window_max_step_ms = max(self._window_max_step_ms, step_ms)
        self._window_requests_sum += emitter_requests
        self._window_requests_max = max(self._window_requests_max, emitter_requests)
        for phase, duration_ms in self._step_phases.items():
            self._window_phases.setdefault(phase, PhaseStats()).add(duration_ms)

        if self._window_steps >= self.report_every_steps:
            self._flush()

    def reset(self) -> None:
        self._reset_window()
        self.last_report = None

    def _reset_window(self) -> None:
        self._window_steps = 0
        self._window_total_ms = 0.0
        self._window_max_step_ms = 0.0
        self._window_requests_sum = 0
        self._window_requests_max = 0
        self._window_phases = _new_phases()

    def _build_report(self) -> ProfilingReport | None:
        steps = self._window_steps
        if steps <= 0:
            return None

        total_ms = self._window_total_ms
        avg_step_ms = total_ms / steps
        phases = {
            name: PhaseReport(
                total_ms=stats.total_ms,
                avg_ms=stats.total_ms / steps,
                max_ms=stats.max_ms,
                share_pct=stats.total_ms / total_ms * 100 if total_ms > 0 else 0.0,
            )
            for name, stats in self._window_phases.items()
        }
        return ProfilingReport(
            steps=steps,
            total_ms=total_ms,
            avg_step_ms=avg_step_ms,
            max_step_ms=self._window_max_step_ms,
            approx_ticks_per_sec=1000 / avg_step_ms if avg_step_ms > 0 else 0.0,
            avg_emitter_requests=self._window_requests_sum / steps,
            max_emitter_requests=self._window_requests_max,
            phases=phases,
        )

    def _flush(self) -> None:
        report = self._build_report()
        if report is None:
            return
        self.last_report = report
        if self.log_reports:
            logger.info("step_world profile: %s", report.summary())
        self._reset_window()
