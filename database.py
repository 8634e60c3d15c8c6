import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from security import hash_password

logger = logging.getLogger(__name__)

# role -> (profile table, scope column)
PROFILE_TABLES = {
    "patient": ("patients", None),
    "doctor": ("doctors", "hospital_id"),
    "lab_tech": ("lab_techs", "hospital_id"),
    "hospital_admin": ("admin_users", "hospital_id"),
    "pharmacist": ("pharmacists", "pharmacy_id"),
    "region_admin": ("region_admins", "region"),
}

SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT UNIQUE NOT NULL,
        phone TEXT UNIQUE,
        password_hash TEXT NOT NULL,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        role TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        last_login TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS hospitals (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        code TEXT UNIQUE NOT NULL,
        region TEXT NOT NULL,
        address TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS pharmacies (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        code TEXT UNIQUE NOT NULL,
        region TEXT NOT NULL,
        address TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS patients (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER UNIQUE NOT NULL,
        date_of_birth TEXT,
        gender TEXT,
        region TEXT,
        city TEXT,
        blood_type TEXT,
        FOREIGN KEY (user_id) REFERENCES users(id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS doctors (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER UNIQUE NOT NULL,
        hospital_id INTEGER NOT NULL,
        license_number TEXT UNIQUE,
        specialization TEXT,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (hospital_id) REFERENCES hospitals(id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS lab_techs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER UNIQUE NOT NULL,
        hospital_id INTEGER NOT NULL,
        license_number TEXT UNIQUE,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (hospital_id) REFERENCES hospitals(id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS admin_users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER UNIQUE NOT NULL,
        hospital_id INTEGER NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (hospital_id) REFERENCES hospitals(id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS pharmacists (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER UNIQUE NOT NULL,
        pharmacy_id INTEGER NOT NULL,
        license_number TEXT UNIQUE,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (pharmacy_id) REFERENCES pharmacies(id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS region_admins (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER UNIQUE NOT NULL,
        region TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS vitals (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        patient_id INTEGER NOT NULL,
        type TEXT NOT NULL,
        value REAL NOT NULL,
        unit TEXT NOT NULL,
        recorded_at TIMESTAMP NOT NULL,
        source TEXT NOT NULL,
        doctor_id INTEGER,
        notes TEXT,
        FOREIGN KEY (patient_id) REFERENCES patients(id),
        FOREIGN KEY (doctor_id) REFERENCES doctors(id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS health_alerts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        patient_id INTEGER NOT NULL,
        type TEXT NOT NULL,
        message TEXT NOT NULL,
        severity TEXT NOT NULL,
        related_record_id INTEGER,
        is_resolved INTEGER NOT NULL DEFAULT 0,
        is_read INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP NOT NULL,
        FOREIGN KEY (patient_id) REFERENCES patients(id)
    )
    ''',
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """SQLite-backed store; every call opens its own connection."""

    def __init__(self, path: str):
        self.path = path

    @contextmanager
    def connect(self):
        """Database connection context manager"""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row  # Enable dict-like access
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def init(self, superadmin_email: str = None, superadmin_password: str = None):
        """Create tables and seed the super admin account"""
        with self.connect() as conn:
            with conn:
                for statement in SCHEMA:
                    conn.execute(statement)

        if superadmin_email and superadmin_password:
            if self.get_user_by_email(superadmin_email) is None:
                self.create_user({
                    "email": superadmin_email,
                    "phone": None,
                    "password_hash": hash_password(superadmin_password),
                    "first_name": "System",
                    "last_name": "Owner",
                    "role": "super_admin",
                })
                logger.info("Seeded super admin %s", superadmin_email)

    # -- users -------------------------------------------------------------

    def get_user_by_id(self, user_id: int) -> Optional[dict]:
        """Get user by ID from database"""
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return dict(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[dict]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            return dict(row) if row else None

    def record_login(self, user_id: int):
        with self.connect() as conn:
            with conn:
                conn.execute("UPDATE users SET last_login = ? WHERE id = ?", (_now(), user_id))

    def set_user_active(self, user_id: int, is_active: bool) -> bool:
        with self.connect() as conn:
            with conn:
                cursor = conn.execute(
                    "UPDATE users SET is_active = ? WHERE id = ?", (1 if is_active else 0, user_id)
                )
                return cursor.rowcount > 0

    def get_profile(self, user_id: int, role: str) -> Optional[dict]:
        """Return the role's profile row for a user, if the role has one"""
        if role not in PROFILE_TABLES:
            return None
        table, _ = PROFILE_TABLES[role]
        with self.connect() as conn:
            row = conn.execute(f"SELECT * FROM {table} WHERE user_id = ?", (user_id,)).fetchone()
            return dict(row) if row else None

    def get_profile_scope(self, user_id: int, role: str):
        """Scope value (hospital id, pharmacy id or region) of the role's profile, or None"""
        table_column = PROFILE_TABLES.get(role)
        if table_column is None or table_column[1] is None:
            return None
        profile = self.get_profile(user_id, role)
        if profile is None:
            return None
        return profile[table_column[1]]

    def create_user(self, user: dict, profile: Optional[dict] = None) -> int:
        """Create a user and its role profile in one transaction"""
        with self.connect() as conn:
            with conn:
                cursor = conn.execute(
                    '''
                    INSERT INTO users (email, phone, password_hash, first_name, last_name, role)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ''',
                    (
                        user["email"],
                        user.get("phone"),
                        user["password_hash"],
                        user["first_name"],
                        user["last_name"],
                        user["role"],
                    ),
                )
                user_id = cursor.lastrowid

                if profile is not None:
                    table, _ = PROFILE_TABLES[user["role"]]
                    columns = ["user_id"] + list(profile)
                    placeholders = ", ".join("?" for _ in columns)
                    conn.execute(
                        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                        [user_id] + list(profile.values()),
                    )
                return user_id

    def get_patient_id(self, user_id: int) -> Optional[int]:
        with self.connect() as conn:
            row = conn.execute("SELECT id FROM patients WHERE user_id = ?", (user_id,)).fetchone()
            return row["id"] if row else None

    def get_doctor(self, doctor_id: int) -> Optional[dict]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM doctors WHERE id = ?", (doctor_id,)).fetchone()
            return dict(row) if row else None

    # -- facilities ------------------------------------------------------

    def create_hospital(self, name: str, code: str, region: str, address: str = None) -> dict:
        return self._create_facility("hospitals", name, code, region, address)

    def create_pharmacy(self, name: str, code: str, region: str, address: str = None) -> dict:
        return self._create_facility("pharmacies", name, code, region, address)

    def get_hospital(self, hospital_id: int) -> Optional[dict]:
        return self._get_facility("hospitals", hospital_id)

    def get_pharmacy(self, pharmacy_id: int) -> Optional[dict]:
        return self._get_facility("pharmacies", pharmacy_id)

    def list_hospitals(self, region: str = None) -> List[dict]:
        return self._list_facilities("hospitals", region)

    def list_pharmacies(self, region: str = None) -> List[dict]:
        return self._list_facilities("pharmacies", region)

    def _create_facility(self, table, name, code, region, address) -> dict:
        with self.connect() as conn:
            with conn:
                cursor = conn.execute(
                    f"INSERT INTO {table} (name, code, region, address) VALUES (?, ?, ?, ?)",
                    (name, code, region, address),
                )
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (cursor.lastrowid,)).fetchone()
            return dict(row)

    def _get_facility(self, table, facility_id) -> Optional[dict]:
        with self.connect() as conn:
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (facility_id,)).fetchone()
            return dict(row) if row else None

    def _list_facilities(self, table, region) -> List[dict]:
        with self.connect() as conn:
            if region:
                rows = conn.execute(f"SELECT * FROM {table} WHERE region = ? ORDER BY name", (region,))
            else:
                rows = conn.execute(f"SELECT * FROM {table} ORDER BY name")
            return [dict(row) for row in rows.fetchall()]

    # -- vitals and alerts -----------------------------------------------

    def create_vitals(self, measurements: Iterable[dict]) -> List[dict]:
        """Insert a batch of vital readings atomically and return them with ids"""
        created = []
        with self.connect() as conn:
            with conn:
                for m in measurements:
                    cursor = conn.execute(
                        '''
                        INSERT INTO vitals
                            (patient_id, type, value, unit, recorded_at, source, doctor_id, notes)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        ''',
                        (
                            m["patient_id"],
                            m["type"],
                            m["value"],
                            m["unit"],
                            m["recorded_at"],
                            m["source"],
                            m.get("doctor_id"),
                            m.get("notes"),
                        ),
                    )
                    created.append(dict(m, id=cursor.lastrowid))
        return created

    def create_alerts(self, alerts: Iterable[dict]) -> List[dict]:
        """Insert a batch of health alerts atomically"""
        created = []
        with self.connect() as conn:
            with conn:
                for a in alerts:
                    cursor = conn.execute(
                        '''
                        INSERT INTO health_alerts
                            (patient_id, type, message, severity, related_record_id, is_resolved, created_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        ''',
                        (
                            a["patient_id"],
                            a["type"],
                            a["message"],
                            a["severity"],
                            a.get("related_record_id"),
                            1 if a.get("is_resolved") else 0,
                            a["created_at"],
                        ),
                    )
                    created.append(dict(a, id=cursor.lastrowid))
        return created

    def list_vitals(self, patient_id: int, page: int = 1, limit: int = 20,
                    start: str = None, end: str = None):
        """Page through a patient's vitals, newest first; returns (rows, total)"""
        where = "patient_id = ?"
        params = [patient_id]
        if start and end:
            where += " AND recorded_at >= ? AND recorded_at <= ?"
            params += [start, end]
        with self.connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM vitals WHERE {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM vitals WHERE {where} ORDER BY recorded_at DESC, id DESC LIMIT ? OFFSET ?",
                params + [limit, (page - 1) * limit],
            ).fetchall()
            return [dict(row) for row in rows], total

    def latest_vitals(self, patient_id: int, limit: int = 10) -> List[dict]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM vitals WHERE patient_id = ? ORDER BY recorded_at DESC, id DESC LIMIT ?",
                (patient_id, limit),
            ).fetchall()
            return [dict(row) for row in rows]

    def list_alerts(self, patient_id: int, page: int = 1, limit: int = 20, is_read: bool = None):
        """Page through a patient's alerts, newest first; returns (rows, total)"""
        where = "patient_id = ?"
        params = [patient_id]
        if is_read is not None:
            where += " AND is_read = ?"
            params.append(1 if is_read else 0)
        with self.connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM health_alerts WHERE {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM health_alerts WHERE {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                params + [limit, (page - 1) * limit],
            ).fetchall()
            return [dict(row) for row in rows], total

    def count_rows(self, table: str, **filters) -> int:
        where = " AND ".join(f"{column} = ?" for column in filters) or "1 = 1"
        with self.connect() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {where}", list(filters.values())).fetchone()[0]
