#!/usr/bin/env python3
"""
Set up the Lecturer Attendance Management System database.

Tables and the default administrator are created on every app start, so
running this without options just reports the state of the database.

Usage:
  python init_db.py
  python init_db.py --reset [--yes]
  python init_db.py --sample
"""

import argparse

from app import create_app
from database import reset_database
from models import AttendanceRecord, CourseSchedule, Programme, User


def summary():
    return {
        'users': User.query.count(),
        'programmes': Programme.query.count(),
        'schedules': CourseSchedule.query.count(),
        'attendance records': AttendanceRecord.query.count(),
    }


def main():
    parser = argparse.ArgumentParser(description="Initialise the attendance database")
    parser.add_argument('--reset', action='store_true', help="Drop and recreate every table")
    parser.add_argument('--yes', action='store_true', help="Do not ask before resetting")
    parser.add_argument('--sample', action='store_true', help="Load the sample timetable afterwards")
    args = parser.parse_args()

    app = create_app()

    if args.reset:
        print("WARNING: This will delete all existing data!")
        if not args.yes:
            confirm = input("Are you sure you want to reset the database? (yes/no): ")
            if confirm.lower() != 'yes':
                print("Database reset cancelled.")
                return
        reset_database(app)
        print("Database reset completed.")

    if args.sample:
        from sample_data import create_sample_data
        create_sample_data(app)

    with app.app_context():
        for name, count in summary().items():
            print(f"  {name}: {count}")
    print(f"Default administrator: {app.config['DEFAULT_ADMIN_EMAIL']}")


if __name__ == '__main__':
    main()
