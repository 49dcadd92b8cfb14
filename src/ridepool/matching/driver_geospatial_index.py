import logging
import threading
from collections.abc import Iterable

import h3

from ridepool.geo.distance import haversine_distance_km

logger = logging.getLogger(__name__)


class DriverGeospatialIndex:
    """Spatial index for driver locations using H3 hexagonal cells.

    Serves as the DriverLocator: ``find_nearby`` returns driver ids within
    the search radius, nearest first.
    """

    def __init__(self, h3_resolution: int = 9, search_radius_km: float = 5.0):
        self._h3_resolution = h3_resolution
        self._search_radius_km = search_radius_km
        self._h3_cells: dict[str, set[str]] = {}
        self._driver_locations: dict[str, tuple[float, float, str]] = {}
        self._lock = threading.Lock()  # Thread safety for concurrent access

    def __len__(self) -> int:
        with self._lock:
            return len(self._driver_locations)

    def update_driver_location(self, driver_id: str, lat: float, lon: float) -> None:
        """Insert the driver or move it to a new position."""
        with self._lock:
            new_cell = self._get_h3_cell(lat, lon)
            previous = self._driver_locations.get(driver_id)

            if previous is not None:
                _, _, old_cell = previous
                if old_cell != new_cell:
                    self._discard_from_cell(old_cell, driver_id)

            self._h3_cells.setdefault(new_cell, set()).add(driver_id)
            self._driver_locations[driver_id] = (lat, lon, new_cell)

    def load(self, positions: Iterable[tuple[str, float, float]]) -> None:
        """Replace the index with (driver_id, lat, lon) triples, e.g. from active rides."""
        self.clear()
        count = 0
        for driver_id, lat, lon in positions:
            self.update_driver_location(driver_id, lat, lon)
            count += 1
        logger.info(f"Loaded {count} driver positions into spatial index")

    def remove_driver(self, driver_id: str) -> None:
        with self._lock:
            if driver_id not in self._driver_locations:
                return

            _, _, cell = self._driver_locations.pop(driver_id)
            self._discard_from_cell(cell, driver_id)

    def find_nearest_drivers(
        self,
        lat: float,
        lon: float,
        radius_km: float | None = None,
    ) -> list[tuple[str, float]]:
        """(driver_id, distance_km) pairs within radius, nearest first."""
        radius_km = self._search_radius_km if radius_km is None else radius_km

        with self._lock:
            if not self._driver_locations:
                return []

            center_cell = self._get_h3_cell(lat, lon)
            edge_km = h3.average_hexagon_edge_length(self._h3_resolution, unit="km")
            # Maximum k rings for full radius coverage at this resolution
            max_k = max(1, int(radius_km / edge_km) + 1)

            candidates: list[tuple[str, float]] = []
            for cell in h3.grid_disk(center_cell, max_k):
                for driver_id in self._h3_cells.get(cell, ()):
                    driver_lat, driver_lon, _ = self._driver_locations[driver_id]
                    distance = haversine_distance_km(lat, lon, driver_lat, driver_lon)
                    if distance <= radius_km:
                        candidates.append((driver_id, distance))

        candidates.sort(key=lambda x: x[1])
        return candidates

    async def find_nearby(self, origin: tuple[float, float]) -> list[str]:
        lat, lon = origin
        return [driver_id for driver_id, _ in self.find_nearest_drivers(lat, lon)]

    def _discard_from_cell(self, cell: str, driver_id: str) -> None:
        if cell in self._h3_cells:
            self._h3_cells[cell].discard(driver_id)
            if not self._h3_cells[cell]:
                del self._h3_cells[cell]

    def _get_h3_cell(self, lat: float, lon: float) -> str:
        return h3.latlng_to_cell(lat, lon, self._h3_resolution)

    def clear(self) -> None:
        with self._lock:
            self._h3_cells.clear()
            self._driver_locations.clear()
