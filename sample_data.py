#!/usr/bin/env python3
"""
Sample data generator for the Lecturer Attendance Management System
Creates one account per role, a programme with courses, a class group,
a building with rooms and a week of timetable slots
"""

from app import create_app
from database import db
from models.academic import ClassGroup, Course, Programme
from models.facilities import Building, Classroom
from models.schedule import CourseSchedule, SessionType
from models.user import Lecturer, User, UserRole

SAMPLE_PASSWORD = 'password123'


def _user(email, first_name, last_name, role):
    user = User.query.filter_by(email=email).first()
    if user:
        return user
    user = User(email=email, first_name=first_name, last_name=last_name, role=role)
    user.set_password(SAMPLE_PASSWORD)
    db.session.add(user)
    db.session.flush()
    return user


def create_sample_data(app=None):
    """Create sample data for the system"""
    app = app or create_app()

    with app.app_context():
        if Programme.query.first():
            print("Sample data already present, nothing to do.")
            return

        print("Creating sample data...")
        coordinator = _user('coordinator@attendance.local', 'Ama', 'Mensah', UserRole.COORDINATOR)
        class_rep = _user('classrep@attendance.local', 'Kofi', 'Boateng', UserRole.CLASS_REP)
        _user('supervisor@attendance.local', 'Esi', 'Owusu', UserRole.SUPERVISOR)
        _user('online.supervisor@attendance.local', 'Yaw', 'Asante', UserRole.ONLINE_SUPERVISOR)

        lecturers = []
        for index, (first, last, dept) in enumerate([('Kwame', 'Adjei', 'Accounting'),
                                                     ('Abena', 'Osei', 'Marketing')], 1):
            user = _user(f'{first.lower()}.{last.lower()}@attendance.local', first, last, UserRole.LECTURER)
            lecturer = Lecturer(user_id=user.id, employee_id=f'EMP{index:03d}', department=dept,
                                rank='Senior Lecturer', employment_type='FULL_TIME', is_verified=True)
            db.session.add(lecturer)
            lecturers.append(lecturer)
        print(f"✓ Created users (password: {SAMPLE_PASSWORD})")

        programme = Programme(name='MBA Accounting', level='Masters', duration_semesters=4,
                              delivery_modes='Weekday,Weekend', coordinator_id=coordinator.id)
        db.session.add(programme)
        db.session.flush()

        courses = [
            Course(course_code='ACC601', title='Advanced Financial Reporting', programme_id=programme.id,
                   credit_hours=3, semester_level=1),
            Course(course_code='MKT602', title='Strategic Marketing', programme_id=programme.id,
                   credit_hours=3, semester_level=1, virtual_enabled=True),
        ]
        db.session.add_all(courses)

        group = ClassGroup(name='MBA Accounting 2025 Weekday', programme_id=programme.id,
                           admission_year=2025, delivery_mode='Weekday', class_rep_id=class_rep.id,
                           student_count=45, academic_year='2025/2026')
        db.session.add(group)

        building = Building(code='GS', name='Graduate School Block', gps_latitude=5.6037,
                            gps_longitude=-0.1870, total_floors=3)
        db.session.add(building)
        db.session.flush()
        room = Classroom(room_code='GS-101', name='Lecture Room 101', building_id=building.id,
                         capacity=60, room_type='LECTURE_HALL')
        db.session.add(room)
        db.session.flush()
        print("✓ Created programme, courses, class group and rooms")

        for day_of_week in range(1, 6):
            db.session.add(CourseSchedule(course_id=courses[0].id, class_group_id=group.id,
                                          lecturer_id=lecturers[0].id, classroom_id=room.id,
                                          day_of_week=day_of_week, start_time='08:00', end_time='10:00',
                                          session_type=SessionType.LECTURE))
            db.session.add(CourseSchedule(course_id=courses[1].id, class_group_id=group.id,
                                          lecturer_id=lecturers[1].id, day_of_week=day_of_week,
                                          start_time='18:00', end_time='20:00',
                                          session_type=SessionType.VIRTUAL,
                                          meeting_link='https://zoom.us/j/1234567890'))
        db.session.commit()
        print("✓ Created weekday timetable")
        print("Sample data created successfully!")


if __name__ == '__main__':
    create_sample_data()
