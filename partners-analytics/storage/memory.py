# storage/memory.py
import copy
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from metrics import filter_points, to_utc
from .base import BaseStorage, PROJECT_FIELDS, generate_api_key

logger = logging.getLogger(__name__)


class MemoryStorage(BaseStorage):
    """Process-local storage for tests and running without PostgreSQL"""

    def __init__(self):
        self._lock = threading.Lock()
        self.users = {}
        self.projects = {}
        self.metrics = {}
        self.transactions = {}
        self.api_keys = {}

    def get_user(self, user_id: str) -> Optional[Dict]:
        with self._lock:
            user = self.users.get(user_id)
            return copy.deepcopy(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[Dict]:
        with self._lock:
            for user in self.users.values():
                if user['email'] == email:
                    return copy.deepcopy(user)
        return None

    def create_user(self, name: str, email: str, password_hash: str, project_id: str) -> Dict:
        now = datetime.now(timezone.utc)
        user = {
            'id': str(uuid.uuid4()),
            'email': email,
            'password': password_hash,
            'name': name,
            'role': 'PARTNER',
            'project_id': project_id,
            'google_id': None,
            'avatar_url': None,
            'created_at': now,
            'updated_at': now,
        }
        with self._lock:
            self.users[user['id']] = user
        return copy.deepcopy(user)

    def get_project(self, project_id: str) -> Optional[Dict]:
        with self._lock:
            project = self.projects.get(project_id)
            return dict(project) if project else None

    def create_project(self, fields: Dict = None) -> Dict:
        fields = fields or {}
        project = {'id': str(uuid.uuid4())}
        for column in PROJECT_FIELDS:
            project[column] = fields.get(column) or None
        project['setup_completed'] = 'false'
        with self._lock:
            self.projects[project['id']] = project
        return dict(project)

    def update_project(self, project_id: str, updates: Dict) -> Optional[Dict]:
        with self._lock:
            project = self.projects.get(project_id)
            if project is None:
                return None
            for column, value in updates.items():
                if column in PROJECT_FIELDS:
                    project[column] = value
            return dict(project)

    def delete_project(self, project_id: str) -> bool:
        with self._lock:
            if self.projects.pop(project_id, None) is None:
                return False
            for table in (self.metrics, self.transactions, self.api_keys):
                for row_id in [k for k, v in table.items() if v['project_id'] == project_id]:
                    del table[row_id]
        return True

    def get_metrics(self, project_id: str, from_date: Optional[datetime] = None,
                    to_date: Optional[datetime] = None) -> List[Dict]:
        with self._lock:
            rows = [dict(m) for m in self.metrics.values() if m['project_id'] == project_id]

        return filter_points(
            rows,
            to_utc(from_date) if from_date is not None else None,
            to_utc(to_date) if to_date is not None else None
        )

    def get_transactions(self, project_id: str, limit: int = 25) -> List[Dict]:
        with self._lock:
            rows = [dict(t) for t in self.transactions.values() if t['project_id'] == project_id]
        rows.sort(key=lambda t: to_utc(t['ts']), reverse=True)
        return rows[:max(limit, 0)]

    def add_metric_points(self, points: List[Dict]) -> int:
        with self._lock:
            for point in points:
                row = dict(point)
                row.setdefault('id', str(uuid.uuid4()))
                self.metrics[row['id']] = row
        return len(points)

    def add_transactions(self, transactions: List[Dict]) -> int:
        with self._lock:
            for txn in transactions:
                row = dict(txn)
                row.setdefault('id', str(uuid.uuid4()))
                self.transactions[row['id']] = row
        return len(transactions)

    def get_api_keys(self, project_id: str) -> List[Dict]:
        with self._lock:
            rows = [dict(k) for k in self.api_keys.values() if k['project_id'] == project_id]
        return sorted(rows, key=lambda k: k['created_at'], reverse=True)

    def create_api_key(self, project_id: str, name: str) -> Dict:
        api_key = {
            'id': str(uuid.uuid4()),
            'project_id': project_id,
            'name': name,
            'key': generate_api_key(),
            'status': 'active',
            'created_at': datetime.now(timezone.utc),
        }
        with self._lock:
            self.api_keys[api_key['id']] = api_key
        logger.info(f"Created API key {api_key['id']} for project {project_id}")
        return dict(api_key)

    def delete_api_key(self, key_id: str, project_id: str) -> bool:
        with self._lock:
            api_key = self.api_keys.get(key_id)
            if not api_key or api_key['project_id'] != project_id:
                return False
            del self.api_keys[key_id]
        return True
