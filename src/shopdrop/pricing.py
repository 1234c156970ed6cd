"""Distance-banded delivery charge table."""

import math
from pathlib import Path
from typing import Any

from .errors import (
    BandNotFoundError,
    BandOverlapError,
    InvalidBandRangeError,
    InvalidDistanceError,
    InvalidSchemaVersionError,
)
from .logging_config import get_logger
from .models import DeliveryChargeBand, _utc_now
from .storage import file_lock, read_json, write_json_atomic

log = get_logger(__name__)

SCHEMA_VERSION = 1
PRICING_DIR = "delivery_charges"
BANDS_FILE = "bands.json"

BASE_DELIVERY_CHARGE = 20
PER_KM_CHARGE = 10


def default_delivery_charge(distance: float) -> float:
    """Fallback charge when no band matches: base fee plus 10 per started km."""
    validate_distance(distance)
    return BASE_DELIVERY_CHARGE + math.ceil(distance) * PER_KM_CHARGE


def ranges_overlap(
    new_min: float, new_max: float, existing_min: float, existing_max: float
) -> bool:
    """
    Check whether [new_min, new_max) intersects [existing_min, existing_max).

    Ranges sharing only an endpoint (e.g. [0, 5) and [5, 10)) don't overlap.
    """
    # existing range holds the new start
    if existing_min <= new_min < existing_max:
        return True
    # existing range holds the new end
    if existing_min < new_max <= existing_max:
        return True
    # existing range sits fully inside the new one
    return new_min <= existing_min and existing_max <= new_max


def validate_distance(distance: float) -> None:
    """
    Raises:
        InvalidDistanceError: If distance is negative, infinite or NaN.
    """
    if not math.isfinite(distance) or distance < 0:
        raise InvalidDistanceError(distance)


def validate_range(min_distance: float, max_distance: float, charge: float) -> None:
    """
    Raises:
        InvalidBandRangeError: On non-finite values, negative bounds or charge,
            or max <= min.
    """
    if not all(math.isfinite(v) for v in (min_distance, max_distance, charge)):
        raise InvalidBandRangeError(min_distance, max_distance, "values must be finite numbers")
    if min_distance < 0:
        raise InvalidBandRangeError(min_distance, max_distance, "min distance must be >= 0")
    if max_distance <= min_distance:
        raise InvalidBandRangeError(
            min_distance, max_distance, "max distance must be greater than min distance"
        )
    if charge < 0:
        raise InvalidBandRangeError(min_distance, max_distance, "charge must be >= 0")


class PricingTable:
    """Manages delivery charge bands and distance-to-charge lookup."""

    def __init__(self, config_dir: Path):
        """
        Initialize PricingTable.

        Args:
            config_dir: Base data directory.
        """
        self.config_dir = config_dir / PRICING_DIR
        self.config_path = self.config_dir / BANDS_FILE

    def _lock(self):
        return file_lock(self.config_dir / ".bands.lock")

    def _load_data(self) -> dict[str, Any]:
        if not self.config_path.exists():
            return {"schema_version": SCHEMA_VERSION, "bands": []}

        data = read_json(self.config_path)
        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)
        return data

    def _load_bands(self) -> list[DeliveryChargeBand]:
        return [DeliveryChargeBand.from_dict(b) for b in self._load_data().get("bands", [])]

    def _save_bands(self, bands: list[DeliveryChargeBand]) -> None:
        write_json_atomic(
            self.config_path,
            {"schema_version": SCHEMA_VERSION, "bands": [b.to_dict() for b in bands]},
        )

    @staticmethod
    def _find_overlap(
        bands: list[DeliveryChargeBand],
        min_distance: float,
        max_distance: float,
        exclude_id: str | None = None,
    ) -> DeliveryChargeBand | None:
        for band in bands:
            if not band.is_active or band.id == exclude_id:
                continue
            if ranges_overlap(min_distance, max_distance, band.min_distance, band.max_distance):
                return band
        return None

    def list_bands(self, include_inactive: bool = False) -> list[DeliveryChargeBand]:
        """
        List bands sorted by min_distance.

        Args:
            include_inactive: If True, include deactivated bands (audit view).
        """
        bands = self._load_bands()
        if not include_inactive:
            bands = [b for b in bands if b.is_active]
        return sorted(bands, key=lambda b: b.min_distance)

    def get_band(self, band_id: str) -> DeliveryChargeBand:
        """
        Raises:
            BandNotFoundError: If the band doesn't exist.
        """
        for band in self._load_bands():
            if band.id == band_id:
                return band
        raise BandNotFoundError(band_id)

    def find_band(self, distance: float) -> DeliveryChargeBand | None:
        """
        The active band containing distance, or None.

        Raises:
            InvalidDistanceError: If distance is negative or not finite.
        """
        validate_distance(distance)
        for band in self._load_bands():
            if band.is_active and band.contains(distance):
                return band
        return None

    def lookup(self, distance: float) -> float | None:
        """Charge of the active band containing distance, or None."""
        band = self.find_band(distance)
        return band.charge if band is not None else None

    def charge_for_distance(self, distance: float) -> float:
        """Band charge for distance, falling back to default_delivery_charge()."""
        charge = self.lookup(distance)
        if charge is None:
            charge = default_delivery_charge(distance)
            log.debug(f"No band for {distance:.3f} km, using default charge {charge}")
        return charge

    def insert_band(
        self, min_distance: float, max_distance: float, charge: float
    ) -> DeliveryChargeBand:
        """
        Add a new active band.

        The overlap check and the write happen under the table lock, so the
        check always sees the latest persisted bands.

        Raises:
            InvalidBandRangeError: If the range or charge is malformed.
            BandOverlapError: If the range intersects an active band.
        """
        validate_range(min_distance, max_distance, charge)

        with self._lock():
            bands = self._load_bands()
            overlapping = self._find_overlap(bands, min_distance, max_distance)
            if overlapping is not None:
                log.warning(
                    f"Rejected band {min_distance}-{max_distance}: "
                    f"overlaps [Band: {overlapping.id}]"
                )
                raise BandOverlapError(min_distance, max_distance, overlapping)

            band = DeliveryChargeBand.create(min_distance, max_distance, charge)
            bands.append(band)
            self._save_bands(bands)

        log.info(f"[Band: {band.id}] Created {min_distance}-{max_distance} km -> {charge}")
        return band

    def update_band(
        self,
        band_id: str,
        min_distance: float | None = None,
        max_distance: float | None = None,
        charge: float | None = None,
        is_active: bool | None = None,
    ) -> DeliveryChargeBand:
        """
        Update fields of an existing band.

        The overlap check (excluding the band itself) is re-run whenever a
        boundary changes or the band is re-activated.

        Raises:
            BandNotFoundError: If the band doesn't exist.
            InvalidBandRangeError: If the resulting range is malformed.
            BandOverlapError: If the resulting range intersects another active band.
        """
        with self._lock():
            bands = self._load_bands()
            for band in bands:
                if band.id == band_id:
                    break
            else:
                raise BandNotFoundError(band_id)

            new_min = band.min_distance if min_distance is None else min_distance
            new_max = band.max_distance if max_distance is None else max_distance
            new_charge = band.charge if charge is None else charge
            new_active = band.is_active if is_active is None else is_active

            validate_range(new_min, new_max, new_charge)

            boundary_changed = new_min != band.min_distance or new_max != band.max_distance
            reactivated = new_active and not band.is_active
            if new_active and (boundary_changed or reactivated):
                overlapping = self._find_overlap(bands, new_min, new_max, exclude_id=band.id)
                if overlapping is not None:
                    raise BandOverlapError(new_min, new_max, overlapping)

            band.min_distance = new_min
            band.max_distance = new_max
            band.charge = new_charge
            band.is_active = new_active
            band.updated_at = _utc_now()
            self._save_bands(bands)

        log.info(f"[Band: {band.id}] Updated to {new_min}-{new_max} km -> {new_charge}")
        return band

    def deactivate_band(self, band_id: str) -> DeliveryChargeBand:
        """
        Soft-delete a band by setting is_active=False.

        Raises:
            BandNotFoundError: If the band doesn't exist.
        """
        with self._lock():
            bands = self._load_bands()
            for band in bands:
                if band.id == band_id:
                    band.is_active = False
                    band.updated_at = _utc_now()
                    self._save_bands(bands)
                    log.info(f"[Band: {band.id}] Deactivated")
                    return band

        raise BandNotFoundError(band_id)
