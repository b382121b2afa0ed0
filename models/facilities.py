"""
Facility models for the Lecturer Attendance Management System
Building and Classroom models carrying the GPS points used for geofencing
"""

from database import db


class Building(db.Model):
    """Campus building with a reference GPS point"""
    __tablename__ = 'buildings'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    address = db.Column(db.String(255), nullable=True)
    gps_latitude = db.Column(db.Float, nullable=False)
    gps_longitude = db.Column(db.Float, nullable=False)
    total_floors = db.Column(db.Integer, nullable=True)

    classrooms = db.relationship('Classroom', backref='building', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'address': self.address,
            'gps_latitude': self.gps_latitude,
            'gps_longitude': self.gps_longitude,
            'total_floors': self.total_floors,
            'total_classrooms': self.classrooms.count(),
        }

    def __repr__(self):
        return f'<Building {self.code}: {self.name}>'


class Classroom(db.Model):
    """Lecture room, optionally with its own GPS point or a standing virtual link"""
    __tablename__ = 'classrooms'

    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(30), unique=True, nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    building_id = db.Column(db.Integer, db.ForeignKey('buildings.id'), nullable=False)
    capacity = db.Column(db.Integer, nullable=True)
    room_type = db.Column(db.String(50), nullable=True)
    equipment_list = db.Column(db.Text, nullable=True)  # comma separated
    gps_latitude = db.Column(db.Float, nullable=True)
    gps_longitude = db.Column(db.Float, nullable=True)
    availability_status = db.Column(db.String(20), nullable=False, default='available')
    virtual_link = db.Column(db.String(500), nullable=True)

    schedules = db.relationship('CourseSchedule', backref='classroom', lazy='dynamic')

    def get_reference_point(self):
        """GPS point used for location checks: the room's own, else its building's"""
        if self.gps_latitude is not None and self.gps_longitude is not None:
            return (self.gps_latitude, self.gps_longitude)
        if self.building is not None:
            return (self.building.gps_latitude, self.building.gps_longitude)
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'name': self.name,
            'building_id': self.building_id,
            'building_name': self.building.name if self.building else None,
            'capacity': self.capacity,
            'room_type': self.room_type,
            'equipment_list': [e.strip() for e in (self.equipment_list or '').split(',') if e.strip()],
            'gps_latitude': self.gps_latitude,
            'gps_longitude': self.gps_longitude,
            'availability_status': self.availability_status,
            'virtual_link': self.virtual_link,
        }

    def __repr__(self):
        return f'<Classroom {self.room_code}>'
