import asyncio
import tempfile
import unittest
from pathlib import Path

from schoolcomms import models  # noqa: F401
from schoolcomms.db import Base, build_engine
from schoolcomms.gateway import SqlAlchemyGateway, eq


class GatewayTestCase(unittest.TestCase):
    """Temp-file SQLite database per class, emptied before every test."""

    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / f'{cls.__name__}.db'
        cls._engine = build_engine(f'sqlite:///{db_path}')
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        with self._engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())
        self.gateway = SqlAlchemyGateway(self._engine, Base.metadata)

    def run_async(self, coro):
        return asyncio.run(coro)

    def add_profile(self, user_id: str, full_name: str, role: str = 'admin') -> dict:
        return self.run_async(
            self.gateway.insert('profiles', {'user_id': user_id, 'full_name': full_name, 'role': role})
        )

    def add_student(self, student_id: str, full_name: str) -> dict:
        return self.run_async(
            self.gateway.insert('students', {'id': student_id, 'full_name': full_name, 'student_code': student_id.upper()})
        )

    def rows(self, table: str, **filters) -> list[dict]:
        return self.run_async(self.gateway.select(table, filters=[eq(k, v) for k, v in filters.items()]))
