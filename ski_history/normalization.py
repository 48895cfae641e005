"""Cleaning of raw snow reports into the stored snow document."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

Converter = Callable[[Any], Any]

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")

FORECAST_DAYS = 5


def leading_float(value: Any) -> Optional[float]:
    """Parse the numeric prefix of a value (``'3"'`` -> 3.0), or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _LEADING_NUMBER.match(str(value))
    return float(match.group(1)) if match else None


def leading_int(value: Any) -> Optional[int]:
    number = leading_float(value)
    return int(number) if number is not None else None


def amount_or_zero(value: Any) -> float:
    return leading_float(value) or 0.0


@dataclass(frozen=True)
class FieldMapping:
    """Describes how to pull and transform a raw metric into a normalized field."""

    source: str
    unit: Optional[str] = None
    converter: Optional[Converter] = None

    def extract(self, payload: Mapping[str, Any]) -> Any:
        value = payload.get(self.source)
        if self.unit is not None:
            value = value.get(self.unit) if isinstance(value, Mapping) else None
        if self.converter:
            value = self.converter(value)
        return value


def _measurement(source: str) -> Dict[str, FieldMapping]:
    return {
        "inches": FieldMapping(source, "Inches", amount_or_zero),
        "cm": FieldMapping(source, "Centimeters", amount_or_zero),
    }


SNOWFALL_MAPPING: Dict[str, Dict[str, FieldMapping]] = {
    "overnight": _measurement("OvernightSnowfall"),
    "24hour": _measurement("TwentyFourHourSnowfall"),
    "48hour": _measurement("FortyEightHourSnowfall"),
    "7day": _measurement("SevenDaySnowfall"),
    "season_total": _measurement("CurrentSeason"),
}

BASE_DEPTH_MAPPING = _measurement("BaseDepth")

_DAY_MAPPING = {
    "high_f": FieldMapping("HighTempStandard", converter=leading_int),
    "high_c": FieldMapping("HighTempMetric", converter=leading_int),
    "low_f": FieldMapping("LowTempStandard", converter=leading_int),
    "low_c": FieldMapping("LowTempMetric", converter=leading_int),
    "description": FieldMapping("WeatherShortDescription", converter=lambda value: value or None),
    "snowfall_day_inches": FieldMapping("SnowFallDayStandard", converter=amount_or_zero),
    "snowfall_night_inches": FieldMapping("SnowFallNightStandard", converter=amount_or_zero),
}


class SnowReportCleaner:
    """Turns the raw ``{snowReport, forecasts}`` extraction into the stored snow document."""

    def __init__(
        self,
        snowfall: Mapping[str, Mapping[str, FieldMapping]] = SNOWFALL_MAPPING,
        base_depth: Mapping[str, FieldMapping] = BASE_DEPTH_MAPPING,
    ) -> None:
        self._snowfall = snowfall
        self._base_depth = base_depth

    def _forecast_day(self, day: Mapping[str, Any], *, include_wind: bool) -> Dict[str, Any]:
        cleaned: Dict[str, Any] = {}
        if not include_wind:
            cleaned["date"] = day.get("Date") or None
        for name, mapping in _DAY_MAPPING.items():
            cleaned[name] = mapping.extract(day)
        if include_wind:
            cleaned["wind"] = day.get("Wind") or None
            cleaned["wind_speed"] = day.get("WindSpeed") or None
        return cleaned

    def _forecast(self, forecasts: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(forecasts, list) or not forecasts:
            return None
        locations: List[Dict[str, Any]] = []
        for location in forecasts:
            if not isinstance(location, Mapping):
                continue
            days = [d for d in location.get("ForecastData") or [] if isinstance(d, Mapping)]
            locations.append(
                {
                    "name": location.get("Location") or "Unknown",
                    "elevation": location.get("Elevation") or None,
                    "today": self._forecast_day(days[0], include_wind=True) if days else None,
                    "forecast_days": [
                        self._forecast_day(day, include_wind=False) for day in days[:FORECAST_DAYS]
                    ],
                }
            )
        return {"locations": locations}

    def clean(
        self,
        resort_key: str,
        resort_name: str,
        raw: Any,
        *,
        date: str,
        timestamp: Optional[datetime] = None,
    ) -> Optional[Dict[str, Any]]:
        if not isinstance(raw, Mapping) or not isinstance(raw.get("snowReport"), Mapping):
            return None
        report = raw["snowReport"]
        timestamp = timestamp or datetime.now(timezone.utc)

        snowfall: Dict[str, float] = {}
        for window, units in self._snowfall.items():
            for unit, mapping in units.items():
                snowfall[f"{window}_{unit}"] = mapping.extract(report)

        return {
            "resort": resort_key,
            "resortName": resort_name,
            "date": date,
            "timestamp": timestamp.isoformat(),
            "lastUpdated": report.get("LastUpdatedText") or None,
            "conditions": report.get("OverallSnowConditions") or None,
            "snowfall": snowfall,
            "baseDepth": {unit: mapping.extract(report) for unit, mapping in self._base_depth.items()},
            "forecast": self._forecast(raw.get("forecasts")),
        }


DEFAULT_CLEANER = SnowReportCleaner()
