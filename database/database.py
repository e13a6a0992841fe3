"""
Database connection and transaction management using raw PostgreSQL
Backs the JSONB document store used for buses, schedules and bookings
"""
import psycopg2
from psycopg2 import pool, extras, sql
from psycopg2.extensions import ISOLATION_LEVEL_READ_COMMITTED
from contextlib import contextmanager
import os
from pathlib import Path

DEFAULT_DATABASE = 'bus_ticketing'


class DatabaseManager:
    """
    Database manager with transaction support and connection pooling
    """

    def __init__(self, database_url=None, minconn=2, maxconn=40):
        """
        Initialize database manager

        Args:
            database_url: Database connection URL (defaults to env variable)
            minconn: Connections opened eagerly
            maxconn: Upper bound on pooled connections
        """
        self.database_url = database_url or os.getenv('DATABASE_URL', f'postgresql://localhost/{DEFAULT_DATABASE}')

        # Parse database URL
        self.db_config = self._parse_database_url(self.database_url)

        # Create connection pool
        try:
            self.connection_pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=minconn,
                maxconn=maxconn,
                **self.db_config
            )
        except psycopg2.Error as e:
            raise RuntimeError(f"Failed to create database connection pool: {e}")

    def _parse_database_url(self, url):
        """Parse database URL into connection parameters"""
        if not (url.startswith('postgresql://') or url.startswith('postgres://')):
            return {
                'database': DEFAULT_DATABASE,
                'host': 'localhost',
                'port': 5432,
            }

        url = url.replace('postgresql://', '').replace('postgres://', '')

        # Parse user:password@host:port/database
        if '@' in url:
            auth, location = url.split('@', 1)
            if ':' in auth:
                user, password = auth.split(':', 1)
            else:
                user, password = auth, None
        else:
            user, password = None, None
            location = url

        if '/' in location:
            host_port, database = location.split('/', 1)
        else:
            host_port, database = location, DEFAULT_DATABASE

        if ':' in host_port:
            host, port = host_port.split(':', 1)
            port = int(port)
        else:
            host, port = host_port or 'localhost', 5432

        config = {
            'database': database,
            'host': host,
            'port': port,
        }

        if user:
            config['user'] = user
        if password:
            config['password'] = password

        return config

    def get_connection(self):
        """Get a connection from the pool"""
        return self.connection_pool.getconn()

    def return_connection(self, conn):
        """Return a connection to the pool"""
        self.connection_pool.putconn(conn)

    def close_all_connections(self):
        """Close all connections in the pool"""
        if self.connection_pool:
            self.connection_pool.closeall()

    def create_tables(self):
        """Create all database tables from schema"""
        schema_file = Path(__file__).parent / 'schema.sql'

        if not schema_file.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_file}")

        with open(schema_file, 'r') as f:
            schema_sql = f.read()

        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(schema_sql)
            conn.commit()
        finally:
            self.return_connection(conn)

    def drop_tables(self):
        """Drop all database tables (use with caution!)"""
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute("""
                    SELECT tablename FROM pg_tables
                    WHERE schemaname = 'public'
                """)
                tables = [row[0] for row in cursor.fetchall()]

                for table in tables:
                    cursor.execute(sql.SQL("DROP TABLE IF EXISTS {} CASCADE").format(
                        sql.Identifier(table)
                    ))
            conn.commit()
        finally:
            self.return_connection(conn)

    @contextmanager
    def get_cursor(self, isolation_level=None, cursor_factory=None):
        """
        Get a cursor with automatic connection management

        Args:
            isolation_level: Transaction isolation level
            cursor_factory: Cursor factory (e.g., RealDictCursor for dict results)

        Usage:
            with db.get_cursor() as cursor:
                cursor.execute("SELECT * FROM documents")
                results = cursor.fetchall()
        """
        conn = self.get_connection()
        conn.set_isolation_level(isolation_level or ISOLATION_LEVEL_READ_COMMITTED)

        cursor = conn.cursor(cursor_factory=cursor_factory or extras.RealDictCursor)

        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            self.return_connection(conn)
