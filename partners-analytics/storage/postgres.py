# storage/postgres.py
import logging
from datetime import datetime
from typing import Dict, List, Optional

from database.connection import db_manager
from .base import BaseStorage, PROJECT_FIELDS, generate_api_key

logger = logging.getLogger(__name__)

PROJECT_COLUMNS = "id, " + ", ".join(PROJECT_FIELDS)


class PostgresStorage(BaseStorage):
    def __init__(self, manager=None):
        self.db = manager or db_manager

    def _fetch_one(self, query, params):
        rows = self.db.execute_query(query, params, fetch=True)
        return dict(rows[0]) if rows else None

    def _fetch_all(self, query, params):
        return [dict(row) for row in self.db.execute_query(query, params, fetch=True)]

    # Users

    def get_user(self, user_id: str) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM users WHERE id = %s", (user_id,))

    def get_user_by_email(self, email: str) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM users WHERE email = %s", (email,))

    def create_user(self, name: str, email: str, password_hash: str, project_id: str) -> Dict:
        query = """
            INSERT INTO users (name, email, password, role, project_id)
            VALUES (%s, %s, %s, 'PARTNER', %s)
            RETURNING *
        """
        rows = self.db.execute_returning(query, (name, email, password_hash, project_id))
        return dict(rows[0])

    # Projects

    def get_project(self, project_id: str) -> Optional[Dict]:
        return self._fetch_one(f"SELECT {PROJECT_COLUMNS} FROM projects WHERE id = %s", (project_id,))

    def create_project(self, fields: Dict = None) -> Dict:
        fields = fields or {}
        columns = [c for c in PROJECT_FIELDS if c != 'setup_completed']
        query = f"""
            INSERT INTO projects ({', '.join(columns)}, setup_completed)
            VALUES ({', '.join(['%s'] * len(columns))}, 'false')
            RETURNING {PROJECT_COLUMNS}
        """
        rows = self.db.execute_returning(query, [fields.get(c) or None for c in columns])
        return dict(rows[0])

    def update_project(self, project_id: str, updates: Dict) -> Optional[Dict]:
        set_clauses = []
        params = {'id': project_id}

        for column, value in updates.items():
            if column not in PROJECT_FIELDS:
                continue
            set_clauses.append(f"{column} = %({column})s")
            params[column] = value

        if not set_clauses:
            return self.get_project(project_id)

        query = f"""
            UPDATE projects
            SET {', '.join(set_clauses)}
            WHERE id = %(id)s
            RETURNING {PROJECT_COLUMNS}
        """
        rows = self.db.execute_returning(query, params)
        return dict(rows[0]) if rows else None

    def delete_project(self, project_id: str) -> bool:
        query = """
            WITH m AS (DELETE FROM metric_points WHERE project_id = %(id)s),
                 t AS (DELETE FROM transactions WHERE project_id = %(id)s),
                 k AS (DELETE FROM api_keys WHERE project_id = %(id)s)
            DELETE FROM projects WHERE id = %(id)s
        """
        return self.db.execute_query(query, {"id": project_id}) > 0

    # Metrics and transactions

    def get_metrics(self, project_id: str, from_date: Optional[datetime] = None,
                    to_date: Optional[datetime] = None) -> List[Dict]:
        conditions = ["project_id = %s"]
        params = [project_id]

        if from_date is not None:
            conditions.append("t >= %s")
            params.append(from_date)
        if to_date is not None:
            conditions.append("t <= %s")
            params.append(to_date)

        query = f"""
            SELECT id, project_id, t, volume_usd, fees_usd, trades
            FROM metric_points
            WHERE {' AND '.join(conditions)}
            ORDER BY t ASC
        """
        return self._fetch_all(query, params)

    def get_transactions(self, project_id: str, limit: int = 25) -> List[Dict]:
        query = """
            SELECT id, project_id, ts, asset_from, asset_to, amount_in, amount_out, route,
                   usd_notional, fee_usd, status, tx_hash, chain
            FROM transactions
            WHERE project_id = %s
            ORDER BY ts DESC
            LIMIT %s
        """
        return self._fetch_all(query, (project_id, max(limit, 0)))

    def add_metric_points(self, points: List[Dict]) -> int:
        query = """
            INSERT INTO metric_points (project_id, t, volume_usd, fees_usd, trades)
            VALUES (%(project_id)s, %(t)s, %(volume_usd)s, %(fees_usd)s, %(trades)s)
        """
        return self.db.execute_many(query, points)

    def add_transactions(self, transactions: List[Dict]) -> int:
        query = """
            INSERT INTO transactions (
                project_id, ts, asset_from, asset_to, amount_in, amount_out, route,
                usd_notional, fee_usd, status, tx_hash, chain
            ) VALUES (
                %(project_id)s, %(ts)s, %(asset_from)s, %(asset_to)s, %(amount_in)s, %(amount_out)s, %(route)s,
                %(usd_notional)s, %(fee_usd)s, %(status)s, %(tx_hash)s, %(chain)s
            )
        """
        return self.db.execute_many(query, transactions)

    # API keys

    def get_api_keys(self, project_id: str) -> List[Dict]:
        query = """
            SELECT id, project_id, name, key, status, created_at
            FROM api_keys
            WHERE project_id = %s
            ORDER BY created_at DESC
        """
        return self._fetch_all(query, (project_id,))

    def create_api_key(self, project_id: str, name: str) -> Dict:
        query = """
            INSERT INTO api_keys (project_id, name, key, status)
            VALUES (%s, %s, %s, 'active')
            RETURNING id, project_id, name, key, status, created_at
        """
        rows = self.db.execute_returning(query, (project_id, name, generate_api_key()))
        logger.info(f"Created API key {rows[0]['id']} for project {project_id}")
        return dict(rows[0])

    def delete_api_key(self, key_id: str, project_id: str) -> bool:
        query = "DELETE FROM api_keys WHERE id = %s AND project_id = %s"
        return self.db.execute_query(query, (key_id, project_id)) > 0

    def ping(self) -> bool:
        return self.db.test_connection()
