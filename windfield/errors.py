from __future__ import annotations

from typing import Any


class WindFieldError(RuntimeError):
    pass


class MissingField(WindFieldError):
    def __init__(self, field_id: Any, *, level: Any = None) -> None:
        self.field_id = field_id
        self.level = level
        message = f"Missing field {field_id}"
        if level is not None:
            message += f" at level {level}"
        super().__init__(message)


class DecodeFailure(WindFieldError):
    def __init__(self, field_id: Any, message: str) -> None:
        self.field_id = field_id
        super().__init__(f"Failed to decode field {field_id}: {message}")


class DimensionMismatch(WindFieldError):
    def __init__(self, expected: tuple[int, int], actual: tuple[int, int]) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Mismatched raster dimensions: expected={expected[0]}x{expected[1]} "
            f"actual={actual[0]}x{actual[1]}"
        )


class IndexOutOfRange(WindFieldError):
    def __init__(
        self,
        *,
        lat: float,
        lon: float,
        lat_index: int,
        lon_index: int,
        width: int,
        height: int,
    ) -> None:
        self.lat = lat
        self.lon = lon
        self.lat_index = lat_index
        self.lon_index = lon_index
        self.width = width
        self.height = height
        super().__init__(
            f"Sample ({lat}, {lon}) maps to cell ({lat_index}, {lon_index}) "
            f"outside {width}x{height} raster"
        )


class DuplicateSample(WindFieldError):
    def __init__(self, *, lat: float, lon: float, lat_index: int, lon_index: int) -> None:
        self.lat = lat
        self.lon = lon
        self.lat_index = lat_index
        self.lon_index = lon_index
        super().__init__(f"Duplicate point ({lat}, {lon}) -> ({lat_index}, {lon_index})")


class IncompleteCoverage(WindFieldError):
    def __init__(self, field_id: Any, *, populated: int, expected: int) -> None:
        self.field_id = field_id
        self.populated = populated
        self.expected = expected
        super().__init__(
            f"Field {field_id} populated {populated} of {expected} raster cells"
        )
