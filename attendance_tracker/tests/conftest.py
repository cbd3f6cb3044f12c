"""
Pytest configuration and fixtures
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-attendance-tracker-tests")
os.environ.setdefault("APP_ENV", "local")
os.environ.setdefault("BUSINESS_TZ", "Asia/Kolkata")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from attendance_tracker.main import app  # noqa: E402
from attendance_tracker.db.base import Base  # noqa: E402
from attendance_tracker.core.deps import get_db  # noqa: E402
from attendance_tracker.core.security import hash_password  # noqa: E402
from attendance_tracker.models import Department, Employee, Role  # noqa: E402


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def department(db):
    """Create a test department"""
    dept = Department(name="IT", active=True)
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


@pytest.fixture
def make_employee(db, department):
    """Factory creating active employees with password 'testpass123'"""
    def _make(emp_code, role=Role.EMPLOYEE, name=None, department_id=None):
        employee = Employee(
            emp_code=emp_code,
            name=name or emp_code,
            role=role.value,
            department_id=department_id or department.id,
            password_hash=hash_password("testpass123"),
            active=True,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee
    return _make


@pytest.fixture
def employee(make_employee):
    return make_employee("EMP001", name="Test Employee")


@pytest.fixture
def auth_headers(client):
    """Log in and return Authorization headers"""
    def _headers(emp_code, password="testpass123"):
        response = client.post(
            "/api/v1/auth/login",
            json={"emp_code": emp_code, "password": password},
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _headers
