from __future__ import annotations

import numpy as np
import pytest

from windfield.errors import DecodeFailure, DuplicateSample, IncompleteCoverage, IndexOutOfRange
from windfield.models import WIND_U
from windfield.services.rasterize import (
    cell_indices,
    rasterize_record,
    raster_shape,
    validate_precision,
    wrap_longitudes,
)


@pytest.mark.parametrize(
    ("precision", "expected"),
    [(0.25, (1440, 721)), (0.5, (720, 361)), (1.0, (360, 181)), (0.1, (3600, 1801)), (2.5, (144, 73))],
)
def test_raster_shape(precision: float, expected: tuple[int, int]) -> None:
    assert raster_shape(precision) == expected


def test_raster_shape_rejects_non_positive_precision() -> None:
    with pytest.raises(ValueError, match="positive"):
        raster_shape(0.0)


def test_validate_precision() -> None:
    assert validate_precision(0.25) == 0.25
    assert validate_precision(1) == 1.0
    with pytest.raises(ValueError, match="two decimal places"):
        validate_precision(0.125)
    with pytest.raises(ValueError, match="divide 360 evenly"):
        validate_precision(0.7)
    with pytest.raises(ValueError, match="positive"):
        validate_precision(-0.25)


def test_wrap_longitudes() -> None:
    wrapped = wrap_longitudes(np.array([0.0, 90.0, 180.0, 270.0, 359.9]))
    np.testing.assert_allclose(wrapped, [0.0, 90.0, -180.0, -90.0, -0.1], atol=1e-9)


def test_longitude_wraparound_indices() -> None:
    lons = np.array([0.0, 359.9, 359.999, 180.0, 359.0, 1.0])
    _, lon_index = cell_indices(np.zeros(lons.size), lons, 1.0)
    assert lon_index.astype(int).tolist() == [180, 180, 180, 0, 179, 181]


def test_rounding_is_half_away_from_zero() -> None:
    lat_index, _ = cell_indices(np.array([89.5, 87.5]), np.zeros(2), 1.0)
    assert lat_index.astype(int).tolist() == [1, 3]


def test_poles_map_to_first_and_last_rows(make_record) -> None:
    record = make_record(WIND_U, [(90.0, 0.0, 1.0), (-90.0, 0.0, 2.0)])
    raster = rasterize_record(record, 0.25)

    grid = raster.grid()
    assert raster.dims == (1440, 721)
    assert grid[0, 720] == pytest.approx(1.0)
    assert grid[raster.height - 1, 720] == pytest.approx(2.0)
    assert raster.populated_count == 2


def test_unwritten_cells_keep_fill_value(make_record) -> None:
    record = make_record(WIND_U, [(0.0, 10.0, 4.0)])

    zero_filled = rasterize_record(record, 1.0)
    assert zero_filled.values.dtype == np.float32
    assert np.count_nonzero(zero_filled.values) == 1
    assert zero_filled.grid()[90, 190] == pytest.approx(4.0)
    assert not zero_filled.populated.reshape(181, 360)[0, 0]

    nan_filled = rasterize_record(make_record(WIND_U, [(0.0, 10.0, 4.0)]), 1.0, fill_value=np.nan)
    assert np.isnan(nan_filled.values).sum() == 360 * 181 - 1


def test_full_native_grid_populates_every_cell(make_global_record) -> None:
    record = make_global_record(WIND_U, 1.0, lambda lat, lon: lat * 1000.0 + lon)
    raster = rasterize_record(record, 1.0, require_full_coverage=True)

    grid = raster.grid()
    assert raster.populated.all()
    assert grid[0, 180] == pytest.approx(90.0 * 1000.0 + 0.0)
    assert grid[0, 0] == pytest.approx(90.0 * 1000.0 + 180.0)
    assert grid[180, 359] == pytest.approx(-90.0 * 1000.0 + 179.0)


def test_require_full_coverage_raises_for_partial_grid(make_record) -> None:
    record = make_record(WIND_U, [(0.0, 0.0, 1.0)])
    with pytest.raises(IncompleteCoverage) as excinfo:
        rasterize_record(record, 1.0, require_full_coverage=True)
    assert excinfo.value.populated == 1
    assert excinfo.value.expected == 360 * 181


def test_collision_policies(make_record) -> None:
    samples = [(0.0, 0.0, 1.0), (0.2, 0.1, 5.0), (10.0, 10.0, 7.0)]

    overwrite = rasterize_record(make_record(WIND_U, samples), 1.0)
    assert overwrite.grid()[90, 180] == pytest.approx(5.0)
    assert overwrite.grid()[80, 190] == pytest.approx(7.0)

    average = rasterize_record(make_record(WIND_U, samples), 1.0, policy="average")
    assert average.grid()[90, 180] == pytest.approx(3.0)
    assert average.populated_count == 2

    with pytest.raises(DuplicateSample) as excinfo:
        rasterize_record(make_record(WIND_U, samples), 1.0, policy="reject")
    assert (excinfo.value.lat_index, excinfo.value.lon_index) == (90, 180)
    assert excinfo.value.lat == pytest.approx(0.2)


def test_unknown_policy_is_rejected(make_record) -> None:
    with pytest.raises(ValueError, match="collision policy"):
        rasterize_record(make_record(WIND_U, []), 1.0, policy="sum")


@pytest.mark.parametrize(
    ("lat", "lon"),
    [(91.0, 0.0), (-91.0, 0.0), (0.0, 179.6), (float("nan"), 0.0)],
)
def test_out_of_range_index_is_fatal(make_record, lat: float, lon: float) -> None:
    record = make_record(WIND_U, [(0.0, 0.0, 1.0), (lat, lon, 2.0)])
    with pytest.raises(IndexOutOfRange) as excinfo:
        rasterize_record(record, 1.0)
    assert excinfo.value.width == 360
    assert excinfo.value.height == 181


def test_decoder_errors_are_wrapped() -> None:
    class _BrokenRecord:
        field_id = WIND_U
        level = None

        def latlons(self):
            return [(0.0, 0.0)]

        def values(self):
            raise OSError("truncated message")

    with pytest.raises(DecodeFailure, match="truncated message") as excinfo:
        rasterize_record(_BrokenRecord(), 1.0)
    assert excinfo.value.field_id == WIND_U
    assert isinstance(excinfo.value.__cause__, OSError)


def test_coordinate_value_length_mismatch() -> None:
    class _ShortRecord:
        field_id = WIND_U
        level = None

        def latlons(self):
            return [(0.0, 0.0), (1.0, 1.0)]

        def values(self):
            return [1.0]

    with pytest.raises(DecodeFailure, match="length mismatch"):
        rasterize_record(_ShortRecord(), 1.0)
