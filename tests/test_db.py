from app.db import create_db_engine


class TestCreateDbEngine:

    def test_relative_sqlite_path_kept(self):
        engine = create_db_engine("sqlite:///./loyalty.db")
        try:
            assert engine.url.get_backend_name() == "sqlite"
            assert engine.url.database == "./loyalty.db"
        finally:
            engine.dispose()

    def test_absolute_sqlite_path_kept(self, tmp_path):
        path = tmp_path / "loyalty.db"
        engine = create_db_engine(f"sqlite:///{path}")
        try:
            assert engine.url.database == str(path)
            with engine.connect() as conn:
                assert conn.exec_driver_sql("select 1").scalar() == 1
        finally:
            engine.dispose()

    def test_postgres_url_with_driver(self):
        engine = create_db_engine("postgresql+psycopg2://loyalty:secret@db:5432/loyalty", statement_timeout_ms=0)
        try:
            assert engine.url.drivername == "postgresql+psycopg2"
            assert engine.url.database == "loyalty"
        finally:
            engine.dispose()
