# storage/base.py
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from datetime import datetime

# Columns a partner may change through PATCH /api/project
PROJECT_FIELDS = (
    'name', 'logo_url', 'dapp_url', 'btc_address',
    'thor_name', 'maya_name', 'chainflip_address', 'setup_completed'
)


def generate_api_key() -> str:
    return f"dk_{uuid.uuid4().hex}"


class BaseStorage(ABC):
    """
    Persistence contract for the dashboard.

    Rows are plain dicts keyed by database column name (snake_case). Times
    are timezone-aware UTC datetimes.
    """

    # Users

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Dict]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[Dict]:
        pass

    @abstractmethod
    def create_user(self, name: str, email: str, password_hash: str, project_id: str) -> Dict:
        pass

    # Projects

    @abstractmethod
    def get_project(self, project_id: str) -> Optional[Dict]:
        pass

    @abstractmethod
    def create_project(self, fields: Dict = None) -> Dict:
        """Create a project with setup_completed = 'false'"""
        pass

    @abstractmethod
    def update_project(self, project_id: str, updates: Dict) -> Optional[Dict]:
        """Apply a partial update; returns None if the project does not exist"""
        pass

    @abstractmethod
    def delete_project(self, project_id: str) -> bool:
        """Remove a project together with its metrics, transactions and API keys"""
        pass

    # Metrics and transactions

    @abstractmethod
    def get_metrics(self, project_id: str, from_date: Optional[datetime] = None,
                    to_date: Optional[datetime] = None) -> List[Dict]:
        """Metric points with from_date <= t <= to_date, ascending by t"""
        pass

    @abstractmethod
    def get_transactions(self, project_id: str, limit: int = 25) -> List[Dict]:
        """Most recent transactions first"""
        pass

    @abstractmethod
    def add_metric_points(self, points: List[Dict]) -> int:
        pass

    @abstractmethod
    def add_transactions(self, transactions: List[Dict]) -> int:
        pass

    # API keys

    @abstractmethod
    def get_api_keys(self, project_id: str) -> List[Dict]:
        """Newest first"""
        pass

    @abstractmethod
    def create_api_key(self, project_id: str, name: str) -> Dict:
        pass

    @abstractmethod
    def delete_api_key(self, key_id: str, project_id: str) -> bool:
        """Delete only if the key belongs to project_id"""
        pass

    def ping(self) -> bool:
        return True
