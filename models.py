import unicodedata
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.orm import deferred

db = SQLAlchemy()

SEMESTERS = ('1', '2', '3', '4', '5', '6', '7', '8')


def utcnow():
    return datetime.now(timezone.utc)


def fold(text):
    """Caseless form used for course and search matching (not ASCII-only like SQL lower())."""
    return unicodedata.normalize('NFKC', text or '').casefold()


def _isoformat(value):
    return value.isoformat() if value else None


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Institution(TimestampMixin, db.Model):
    """A college; every account and file belongs to exactly one."""
    __tablename__ = 'institutions'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    domain = db.Column(db.String(100), nullable=False, unique=True, index=True)  # lowercase, e.g. cec.ac.in

    users = db.relationship('User', back_populates='institution', lazy='dynamic')
    files = db.relationship('FileRecord', back_populates='institution', lazy='dynamic')

    def to_dict(self, with_domain=False):
        data = {'id': self.id, 'name': self.name}
        if with_domain:
            data['domain'] = self.domain
        return data


class User(TimestampMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(254), nullable=False, unique=True, index=True)
    # Only loaded when explicitly requested; never serialized.
    password_hash = deferred(db.Column(db.String(128), nullable=False))
    institution_id = db.Column(db.Integer, db.ForeignKey('institutions.id'), nullable=False, index=True)

    institution = db.relationship('Institution', back_populates='users')
    uploads = db.relationship('FileRecord', back_populates='uploader', lazy='dynamic')

    def summary(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}

    def profile(self):
        data = self.summary()
        data['institution'] = self.institution.to_dict(with_domain=True)
        data['created_at'] = _isoformat(self.created_at)
        return data


class FileRecord(TimestampMixin, db.Model):
    __tablename__ = 'files'
    __table_args__ = (
        db.Index('ix_files_institution_semester', 'institution_id', 'semester'),
        db.Index('ix_files_institution_course', 'institution_id', 'course_key'),
        db.Index('ix_files_institution_uploader', 'institution_id', 'uploaded_by'),
        db.Index('ix_files_institution_uploaded_at', 'institution_id', 'uploaded_at'),
        db.CheckConstraint('file_size >= 0', name='ck_files_size_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    # Copied from the uploader when the record is created, never from the request.
    institution_id = db.Column(db.Integer, db.ForeignKey('institutions.id'), nullable=False, index=True)
    uploaded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    filename = db.Column(db.String(255), nullable=False)
    semester = db.Column(db.String(1), nullable=False)
    course = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(1000), nullable=False, default='')
    file_url = db.Column(db.String(500), nullable=False)
    file_type = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    # fold() copies of course, filename and description; kept in step by _refresh_keys.
    course_key = db.Column(db.Text, nullable=False)
    filename_key = db.Column(db.Text, nullable=False)
    description_key = db.Column(db.Text, nullable=False)

    institution = db.relationship('Institution', back_populates='files')
    uploader = db.relationship('User', back_populates='uploads')

    def to_dict(self):
        return {
            'id': self.id,
            'filename': self.filename,
            'semester': self.semester,
            'course': self.course,
            'description': self.description,
            'file_url': self.file_url,
            'file_type': self.file_type,
            'file_size': self.file_size,
            'uploaded_at': _isoformat(self.uploaded_at),
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
            'uploader': self.uploader.summary(),
            'institution': self.institution.to_dict(),
        }


@event.listens_for(FileRecord, 'before_insert')
@event.listens_for(FileRecord, 'before_update')
def _refresh_keys(_mapper, _connection, record):
    record.course_key = fold(record.course)
    record.filename_key = fold(record.filename)
    record.description_key = fold(record.description)
