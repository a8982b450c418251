"""Console table for tick reports.  Changed values are highlighted with ANSI colors."""

from __future__ import annotations

from ewam.simulation.engine import TickReport

GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
MAGENTA = "\033[35m"
BOLD = "\033[1m"
RESET = "\033[0m"

RULE = "-" * 80
HEADER = "ID       TYPE   LAT        LON        ALT     SPD     HDG"

# Minimum change that gets highlighted
LATLON_EPS = 0.0001
ALT_EPS = 10.0
SPEED_EPS = 1.0
HEADING_EPS = 1.0


def _mark(text: str, changed: bool, color: str, color_enabled: bool) -> str:
    if changed and color_enabled:
        return f"{color}{text}{RESET}"
    return text


def format_report(report: TickReport, color: bool = True) -> str:
    """Render one tick as header + one row per entity."""
    header = f"{BOLD}{HEADER}{RESET}" if color else HEADER
    lines = ["", RULE, header, RULE]
    for update in report.entities:
        old, new = update.before, update.after
        lat = _mark(f"{new.lat:9.4f}", abs(new.lat - old.lat) > LATLON_EPS, GREEN, color)
        lon = _mark(f"{new.lon:9.4f}", abs(new.lon - old.lon) > LATLON_EPS, GREEN, color)
        alt = _mark(f"{new.altitude:7.0f}", abs(new.altitude - old.altitude) > ALT_EPS, YELLOW, color)
        spd = _mark(f"{new.speed:7.0f}", abs(new.speed - old.speed) > SPEED_EPS, CYAN, color)
        hdg = _mark(f"{new.heading:6.1f}", abs(new.heading - old.heading) > HEADING_EPS, MAGENTA, color)
        lines.append(f"{new.id}\t {new.type}\t{lat} {lon} {alt} {spd} {hdg}")
    return "\n".join(lines)


def print_report(report: TickReport, color: bool = True) -> None:
    print(format_report(report, color=color), flush=True)
