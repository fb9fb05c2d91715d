"""Print the free slots for a day to stdout.

Usage:
    python -m salon_backend.print_availability 2024-07-15 [--duration 60]
"""
import argparse
import sys
from datetime import date

from salon_backend.booking.errors import BookingError
from salon_backend.core.engine_factory import get_availability_engine


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="List bookable slots for a day.")
    parser.add_argument("date", type=date.fromisoformat, help="Day to inspect (YYYY-MM-DD).")
    parser.add_argument("--duration", type=int, default=None, help="Service length in minutes.")
    args = parser.parse_args(argv)

    try:
        slots = get_availability_engine().get_available_slots(args.date, args.duration)
    except BookingError as exc:
        print(f"Could not compute availability: {exc.message}", file=sys.stderr)
        sys.exit(1)

    if not slots:
        print(f"No free slots on {args.date.isoformat()}.")
        return
    for slot in slots:
        print(slot.label)


if __name__ == "__main__":
    main()
