"""Persistence for institutions, accounts and file records.

Stores are constructed with an explicit SQLAlchemy session (and, for
credentials, a password hasher) rather than reaching for globals, so the
blueprints build them per request from ``db.session``.
"""
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, undefer

from errors import DuplicateKey, conflicting_field
from models import FileRecord, Institution, User, fold

logger = logging.getLogger(__name__)


def _like_pattern(term):
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


class CredentialStore:
    # Compared against when the email has no account; generated once at the configured cost.
    _dummy_hash = None

    def __init__(self, session, hasher):
        self.session = session
        self.hasher = hasher

    def find_institution_by_id(self, institution_id):
        return self.session.get(Institution, institution_id)

    def find_institution_by_name_or_domain(self, name, domain):
        return self.session.query(Institution).filter(
            or_(Institution.name == name, Institution.domain == domain.lower())
        ).first()

    def list_institutions(self):
        return self.session.query(Institution).order_by(Institution.name).all()

    def create_institution(self, name, domain):
        institution = Institution(name=name.strip(), domain=domain.strip().lower())
        self.session.add(institution)
        self._commit(['name', 'domain'], 'Institution with this name or domain already exists')
        return institution

    def create_account(self, name, email, password, institution_id):
        hashed_password = self.hasher.generate_password_hash(password).decode('utf-8')
        user = User(name=name, email=email.lower(), password_hash=hashed_password,
                    institution_id=institution_id)
        self.session.add(user)
        self._commit(['email'], 'User with this email already exists')
        return user

    def find_account_by_id(self, account_id):
        try:
            account_id = int(account_id)
        except (TypeError, ValueError):
            return None
        return self.session.query(User).options(joinedload(User.institution)).filter(
            User.id == account_id
        ).first()

    def find_account_by_email(self, email, include_hash=False):
        query = self.session.query(User).options(joinedload(User.institution))
        if include_hash:
            query = query.options(undefer(User.password_hash))
        return query.filter(User.email == email.lower()).first()

    def verify_password(self, account, candidate):
        try:
            return self.hasher.check_password_hash(account.password_hash, candidate)
        except ValueError:
            # Malformed stored hash; treat as a mismatch.
            logger.warning('Unreadable password hash for account %s', account.id)
            return False

    def burn_password_check(self, candidate):
        """Run one bcrypt comparison that always fails, for logins with no account."""
        if CredentialStore._dummy_hash is None:
            CredentialStore._dummy_hash = self.hasher.generate_password_hash(
                'no-account-has-this-password').decode('utf-8')
        self.hasher.check_password_hash(CredentialStore._dummy_hash, candidate)
        return False

    def _commit(self, fields, message):
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateKey(message, field=conflicting_field(exc, fields)) from exc


class FileStore:

    def __init__(self, session):
        self.session = session

    def create(self, **fields):
        record = FileRecord(**fields)
        self.session.add(record)
        self.session.commit()
        return record

    def get(self, file_id):
        return self.session.query(FileRecord).options(
            joinedload(FileRecord.uploader),
            joinedload(FileRecord.institution),
        ).filter(FileRecord.id == file_id).first()

    def query_for(self, account, semester=None, course=None, my_uploads=False, search_term=None):
        """Files visible to ``account``, newest first.

        The institution term is always present; every other filter narrows it.
        """
        criteria = [FileRecord.institution_id == account.institution_id]
        if semester:
            criteria.append(FileRecord.semester == semester)
        if course:
            criteria.append(FileRecord.course_key == fold(course))
        if my_uploads:
            criteria.append(FileRecord.uploaded_by == account.id)
        if search_term:
            pattern = _like_pattern(fold(search_term))
            criteria.append(or_(
                FileRecord.filename_key.like(pattern, escape='\\'),
                FileRecord.description_key.like(pattern, escape='\\'),
            ))
        return self.session.query(FileRecord).options(
            joinedload(FileRecord.uploader),
            joinedload(FileRecord.institution),
        ).filter(*criteria).order_by(FileRecord.uploaded_at.desc(), FileRecord.id.desc()).all()
