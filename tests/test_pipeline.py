from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from windfield.config import ConversionConfig
from windfield.errors import MissingField
from windfield.models import WIND_U, WIND_V, FieldId, GribLevel
from windfield.services import pipeline

LEVEL_850 = GribLevel("isobaricInhPa", 850)


def test_convert_records_encodes_uniform_wind(make_global_record) -> None:
    records = [
        make_global_record(FieldId(0, 0), 2.5, lambda lat, lon: 280.0),
        make_global_record(WIND_U, 2.5, lambda lat, lon: 3.0),
        make_global_record(WIND_V, 2.5, lambda lat, lon: 4.0),
    ]
    config = ConversionConfig(precision=2.5, require_full_coverage=True)

    texture = pipeline.convert_records(records, config)

    assert (texture.width, texture.height) == (144, 73)
    np.testing.assert_allclose(texture.pixels[..., 0], 0.8, atol=1e-6)
    np.testing.assert_allclose(texture.pixels[..., 1], 0.9, atol=1e-6)
    np.testing.assert_allclose(texture.pixels[..., 2], 5.0 / 30.0, atol=1e-6)


def test_convert_records_filters_level(make_global_record) -> None:
    records = [
        make_global_record(WIND_U, 2.5, lambda lat, lon: 1.0, level=LEVEL_850),
        make_global_record(WIND_V, 2.5, lambda lat, lon: 0.0, level=LEVEL_850),
        make_global_record(WIND_U, 2.5, lambda lat, lon: -1.0, level=GribLevel("isobaricInhPa", 250)),
    ]
    config = ConversionConfig(precision=2.5, level="850 mb")

    texture = pipeline.convert_records(records, config)

    np.testing.assert_allclose(texture.pixels[0, 0], [1.0, 0.5, 1.0 / 30.0], atol=1e-6)


def test_missing_field_aborts_before_rasterizing(monkeypatch, make_record) -> None:
    def _fail(*args, **kwargs):
        raise AssertionError("rasterize_record must not be called")

    monkeypatch.setattr(pipeline, "rasterize_record", _fail)

    with pytest.raises(MissingField) as excinfo:
        pipeline.convert_records([make_record(WIND_U, [(0.0, 0.0, 1.0)])], ConversionConfig())
    assert excinfo.value.field_id == WIND_V


def test_build_outputs_writes_artifacts(monkeypatch, tmp_path: Path, make_global_record) -> None:
    records = [
        make_global_record(WIND_U, 2.5, lambda lat, lon: lat / 10.0),
        make_global_record(WIND_V, 2.5, lambda lat, lon: 2.0),
    ]
    seen: list[object] = []

    def _fake_iter(path):
        seen.append(path)
        return iter(records)

    monkeypatch.setattr(pipeline, "iter_grib_records", _fake_iter)
    config = ConversionConfig(precision=2.5, downscale_factor=4)

    written = pipeline.build_outputs(tmp_path / "wind.grib2", config, tmp_path / "out")

    assert seen == [tmp_path / "wind.grib2"]
    assert sorted(path.name for path in written) == [
        "wind_cache.1.png",
        "wind_field.jpg",
        "wind_field.png",
    ]
    assert all(path.stat().st_size > 0 for path in written)


def test_texture_to_dataset(make_global_record) -> None:
    records = [
        make_global_record(WIND_U, 2.5, lambda lat, lon: 0.0),
        make_global_record(WIND_V, 2.5, lambda lat, lon: -45.0),
    ]
    texture = pipeline.convert_records(records, ConversionConfig(precision=2.5))

    ds = texture.to_dataset()

    assert set(ds.data_vars) == {"u_direction", "v_direction", "speed"}
    assert ds.sizes["latitude"] == 73
    assert ds.sizes["longitude"] == 144
    assert float(ds["speed"].max()) == 1.0
    assert float(ds["v_direction"].sel(latitude=0.0, longitude=0.0)) == 0.0
