"""Print a doctor's bookable slots for one day as JSON.

Usage:
    python -m carebook.print_available_slots DOCTOR_ID DATE [--duration MINUTES]
"""
import argparse
import json
import sys

from carebook.core import config
from carebook.database import SessionLocal
from carebook.scheduling.availability import format_date_for_comparison, get_available_slots_for_date
from carebook.scheduling.readers import load_doctor_appointments, load_doctor_profile


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('doctor_id')
    parser.add_argument('date', help='YYYY-MM-DD or ISO timestamp')
    parser.add_argument('--duration', type=int, default=config.DEFAULT_SLOT_DURATION_MINUTES)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if not format_date_for_comparison(args.date):
        print(f'Invalid date: {args.date}', file=sys.stderr)
        sys.exit(1)

    db = SessionLocal()
    try:
        doctor = load_doctor_profile(db, args.doctor_id)
        if doctor is None:
            print(f'Doctor not found: {args.doctor_id}', file=sys.stderr)
            sys.exit(1)
        appointments = load_doctor_appointments(db, args.doctor_id)
    finally:
        db.close()

    slots = get_available_slots_for_date(
        doctor,
        args.date,
        appointments,
        args.duration,
        config.CONFLICT_EXCLUDED_STATUSES,
    )
    print(json.dumps([slot.model_dump() for slot in slots], indent=2))


if __name__ == '__main__':
    main()
