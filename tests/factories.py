"""
Shared fixtures for the test suite
"""

import shutil
import tempfile
import unittest
from datetime import date

from app import create_app
from config import TestingConfig
from database import db
from models.academic import ClassGroup, Course, Programme
from models.facilities import Building, Classroom
from models.schedule import CourseSchedule, python_weekday_to_day_of_week
from models.user import Lecturer, User, UserRole

PASSWORD = 'password123'
CAMPUS = (5.6037, -0.1870)


class AppTestCase(unittest.TestCase):
    """Fresh in-memory database and test client per test"""

    def setUp(self):
        """Set up test fixtures"""
        self.app = create_app(TestingConfig)
        self.reports_dir = tempfile.mkdtemp()
        self.app.config['REPORTS_FOLDER'] = self.reports_dir

        self.app_context = self.app.app_context()
        self.app_context.push()
        self.client = self.app.test_client()
        self.admin = User.query.filter_by(role=UserRole.ADMIN).first()

    def tearDown(self):
        """Clean up after tests"""
        db.session.remove()
        db.drop_all()
        self.app_context.pop()
        shutil.rmtree(self.reports_dir, ignore_errors=True)

    def login(self, email, password=PASSWORD):
        return self.client.post('/auth/login', json={'email': email, 'password': password})


def make_user(email, role, first_name='Test', last_name='User', password=PASSWORD):
    user = User(email=email, first_name=first_name, last_name=last_name, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def make_lecturer(email='lecturer@test.edu', employee_id='EMP001', first_name='Kwame', last_name='Adjei'):
    user = make_user(email, UserRole.LECTURER, first_name, last_name)
    lecturer = Lecturer(user_id=user.id, employee_id=employee_id, department='Accounting')
    db.session.add(lecturer)
    db.session.commit()
    return lecturer


def today_day_of_week(day=None):
    return python_weekday_to_day_of_week((day or date.today()).weekday())


def make_world(day=None):
    """
    Programme, course, class group with a class rep, a coordinator, a
    lecturer, a building at the campus point with one room, and an
    onsite 08:00-10:00 slot on the given day.
    """
    coordinator = make_user('coordinator@test.edu', UserRole.COORDINATOR, 'Ama', 'Mensah')
    class_rep = make_user('rep@test.edu', UserRole.CLASS_REP, 'Kofi', 'Boateng')
    supervisor = make_user('supervisor@test.edu', UserRole.SUPERVISOR, 'Esi', 'Owusu')
    lecturer = make_lecturer()

    programme = Programme(name='MBA Accounting', level='Masters', duration_semesters=4,
                          delivery_modes='Weekday', coordinator_id=coordinator.id)
    db.session.add(programme)
    db.session.flush()
    course = Course(course_code='ACC601', title='Financial Reporting', programme_id=programme.id)
    group = ClassGroup(name='MBA ACC 2025', programme_id=programme.id, admission_year=2025,
                       delivery_mode='Weekday', class_rep_id=class_rep.id)
    building = Building(code='GS', name='Graduate School', gps_latitude=CAMPUS[0], gps_longitude=CAMPUS[1])
    db.session.add_all([course, group, building])
    db.session.flush()
    room = Classroom(room_code='GS-101', name='Room 101', building_id=building.id)
    db.session.add(room)
    db.session.flush()

    schedule = CourseSchedule(course_id=course.id, class_group_id=group.id, lecturer_id=lecturer.id,
                              classroom_id=room.id, day_of_week=today_day_of_week(day),
                              start_time='08:00', end_time='10:00')
    db.session.add(schedule)
    db.session.commit()

    return {
        'coordinator': coordinator,
        'class_rep': class_rep,
        'supervisor': supervisor,
        'lecturer': lecturer,
        'programme': programme,
        'course': course,
        'class_group': group,
        'building': building,
        'classroom': room,
        'schedule': schedule,
    }


def make_virtual_schedule(world, start_time='18:00', end_time='20:00',
                          meeting_link='https://zoom.us/j/123456789', day=None):
    schedule = CourseSchedule(course_id=world['course'].id, class_group_id=world['class_group'].id,
                              lecturer_id=world['lecturer'].id, day_of_week=today_day_of_week(day),
                              start_time=start_time, end_time=end_time, session_type='VIRTUAL',
                              meeting_link=meeting_link)
    db.session.add(schedule)
    db.session.commit()
    return schedule
