# Entidad de cache de resultados de charts

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List


@dataclass
class CacheEntry:
    """Snapshot cacheado de una ejecución"""

    data: List[Dict[str, Any]]
    sql: str
    execution_time: int
    row_count: int
    query: str
    selected_tables: List[str]
    datasource_id: str
    cached_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            data=data.get("data") or [],
            sql=data["sql"],
            execution_time=int(data.get("execution_time") or 0),
            row_count=int(data.get("row_count") or 0),
            query=data.get("query") or "",
            selected_tables=list(data.get("selected_tables") or []),
            datasource_id=data.get("datasource_id") or "",
            cached_at=data.get("cached_at") or "",
        )
