from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .errors import DegenerateGeometryError, InsufficientDataError
from .geometry import azimuthal_gap, planar_azimuth, planar_distance, to_geographic
from .models import Epicenter, StationObservation

logger = logging.getLogger(__name__)

DETERMINANT_EPSILON = 1e-12


@dataclass(frozen=True)
class TdoaSolution:
    x_km: float
    y_km: float
    iterations: int
    converged: bool
    residuals: np.ndarray


def _usable(observations: list[StationObservation]) -> list[StationObservation]:
    usable = [obs for obs in observations if obs.arrival_time is not None]
    if len(usable) < 3:
        raise InsufficientDataError(
            f"TDOA needs 3 observations with arrival times, got {len(usable)}"
        )
    if len(usable) > 3:
        raise ValueError(f"TDOA solver takes exactly 3 observations, got {len(usable)}")
    return usable


def _distances_and_gradients(x: float, y: float, xs: np.ndarray, ys: np.ndarray):
    dx = x - xs
    dy = y - ys
    dist = np.hypot(dx, dy)
    grad = np.zeros((xs.size, 2), dtype=float)
    nonzero = dist > 0
    grad[nonzero, 0] = dx[nonzero] / dist[nonzero]
    grad[nonzero, 1] = dy[nonzero] / dist[nonzero]
    return dist, grad


def tdoa_residuals(x: float, y: float, xs, ys, arrivals, wave_speed: float) -> np.ndarray:
    """Modeled minus observed arrival differences against station 0."""
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    arrivals = np.asarray(arrivals, dtype=float)
    dist, _ = _distances_and_gradients(x, y, xs, ys)
    modeled = (dist[1:] - dist[0]) / wave_speed
    observed = arrivals[1:] - arrivals[0]
    return modeled - observed


def solve_tdoa(
    observations: list[StationObservation],
    wave_speed: float,
    max_iterations: int = 50,
    tolerance: float = 1e-6,
) -> TdoaSolution:
    """
    Gauss-Newton search for the planar source position from three arrival times.

    Station 0 is the time reference and the search starts at the station
    centroid. Each step solves the 2x2 normal equations in closed form.
    """
    if wave_speed <= 0:
        raise ValueError("wave_speed must be > 0")
    usable = _usable(observations)
    xs = np.array([obs.x_km for obs in usable], dtype=float)
    ys = np.array([obs.y_km for obs in usable], dtype=float)
    arrivals = np.array([obs.arrival_time for obs in usable], dtype=float)
    observed = arrivals[1:] - arrivals[0]

    x = float(xs.mean())
    y = float(ys.mean())
    converged = False
    iterations = 0
    for iterations in range(1, max_iterations + 1):
        dist, grad = _distances_and_gradients(x, y, xs, ys)
        r = (dist[1:] - dist[0]) / wave_speed - observed
        jac = (grad[1:] - grad[0]) / wave_speed

        a = float(jac[:, 0] @ jac[:, 0])
        b = float(jac[:, 0] @ jac[:, 1])
        d = float(jac[:, 1] @ jac[:, 1])
        g0 = -float(jac[:, 0] @ r)
        g1 = -float(jac[:, 1] @ r)
        det = a * d - b * b
        if abs(det) < DETERMINANT_EPSILON:
            raise DegenerateGeometryError(
                f"Normal equations are singular (det={det:.3e}); station geometry is degenerate"
            )
        step_x = (d * g0 - b * g1) / det
        step_y = (a * g1 - b * g0) / det
        x += step_x
        y += step_y
        if not (np.isfinite(x) and np.isfinite(y)):
            raise DegenerateGeometryError("Gauss-Newton estimate diverged")

        step_norm = float(np.hypot(step_x, step_y))
        logger.debug(
            "Iteration: n=%d x=%.6f y=%.6f step=%.3e det=%.3e",
            iterations,
            x,
            y,
            step_norm,
            det,
        )
        if step_norm < tolerance:
            converged = True
            break

    if not converged:
        logger.warning(
            "Gauss-Newton stopped without converging: iterations=%d x=%.4f y=%.4f",
            iterations,
            x,
            y,
        )
    residuals = tdoa_residuals(x, y, xs, ys, arrivals, wave_speed)
    return TdoaSolution(
        x_km=x,
        y_km=y,
        iterations=iterations,
        converged=converged,
        residuals=residuals,
    )


def estimate_epicenter(
    observations: list[StationObservation],
    reference: tuple[float, float],
    wave_speed: float,
) -> Epicenter:
    ref_lat, ref_lon = reference
    logger.info(
        "Starting epicenter estimation: observations=%d reference=(%.5f, %.5f) wave_speed=%.3f",
        len(observations),
        ref_lat,
        ref_lon,
        wave_speed,
    )
    solution = solve_tdoa(observations, wave_speed)
    usable = _usable(observations)

    origins: list[float] = []
    azimuths: list[float] = []
    for obs in usable:
        distance_km = planar_distance(solution.x_km, solution.y_km, obs.x_km, obs.y_km)
        origins.append(obs.arrival_time - distance_km / wave_speed)
        azimuths.append(planar_azimuth(solution.x_km, solution.y_km, obs.x_km, obs.y_km))

    lat, lon = to_geographic(solution.x_km, solution.y_km, ref_lat, ref_lon)
    residuals = solution.residuals
    result = Epicenter(
        x_km=solution.x_km,
        y_km=solution.y_km,
        lat=lat,
        lon=lon,
        reference_lat=ref_lat,
        reference_lon=ref_lon,
        iterations=solution.iterations,
        converged=solution.converged,
        rms_seconds=float(np.sqrt(np.mean(residuals * residuals))) if residuals.size else 0.0,
        origin_time=float(np.mean(origins)),
        azimuthal_gap_deg=float(azimuthal_gap(azimuths)),
        observations=list(observations),
    )
    logger.info(
        "Epicenter estimated: lat=%.5f lon=%.5f x_km=%.3f y_km=%.3f origin=%.3f rms=%.4f gap=%.1f iterations=%d",
        result.lat,
        result.lon,
        result.x_km,
        result.y_km,
        result.origin_time,
        result.rms_seconds,
        result.azimuthal_gap_deg,
        result.iterations,
    )
    return result
