# Cache de charts
from core.services.cache.chart_cache import ChartCache

__all__ = ["ChartCache"]
