# Cache de resultados de charts
#
# Dos direcciones sobre el mismo store:
#   contenido  chart_data:<sha256(sql:datasource:tablas)>  -> CacheEntry
#   identidad  chart_data:id:<chart_id>                    -> clave de contenido
# y un registro de referencias chart_data:refs:<hash> con los charts que
# apuntan a cada entrada, para no borrar una entrada compartida.
#
# Todas las operaciones son best-effort: un fallo del store se registra y
# nunca cambia el resultado del llamador.

import hashlib
import logging
from typing import Any, Dict, List, Optional

from config.settings import settings
from core.domain.cache import CacheEntry
from core.ports.cache_port import CachePort

logger = logging.getLogger(__name__)


class ChartCache:
    def __init__(
        self,
        store: CachePort,
        ttl: Optional[int] = None,
        prefix: Optional[str] = None,
    ):
        self.store = store
        self.ttl = settings.cache.ttl_seconds if ttl is None else ttl
        self.prefix = prefix or settings.cache.prefix

    # Claves

    def content_key(self, sql: str, datasource_id: str, tables: List[str]) -> str:
        """Determinística: el orden de las tablas no importa"""
        content = f"{sql}:{datasource_id}:{','.join(sorted(tables or []))}"
        return self.prefix + hashlib.sha256(content.encode("utf-8")).hexdigest()

    def identity_key(self, chart_id: str) -> str:
        return f"{self.prefix}id:{chart_id}"

    def refs_key(self, content_key: str) -> str:
        return f"{self.prefix}refs:{content_key[len(self.prefix):]}"

    # Referencias

    def _refs(self, content_key: str) -> List[str]:
        return list(self.store.get(self.refs_key(content_key)) or [])

    def _attach(self, chart_id: str, content_key: str, ttl: int) -> None:
        refs = self._refs(content_key)
        if chart_id not in refs:
            refs.append(chart_id)
        self.store.set(self.refs_key(content_key), refs, ttl)

    def _detach(self, chart_id: str, content_key: str, keep_entry: bool = False) -> None:
        """Quita el chart de la entrada; la entrada se borra si nadie más la usa"""
        refs = [r for r in self._refs(content_key) if r != chart_id]
        if refs or keep_entry:
            if refs:
                self.store.set(self.refs_key(content_key), refs, self.ttl)
            else:
                self.store.delete(self.refs_key(content_key))
            return
        self.store.delete(content_key)
        self.store.delete(self.refs_key(content_key))

    # Operaciones

    def cache(
        self,
        chart_id: Optional[str],
        sql: str,
        datasource_id: str,
        tables: List[str],
        rows: List[Dict[str, Any]],
        execution_time: int,
        query: str,
        ttl: Optional[int] = None,
    ) -> Optional[str]:
        """
        Guarda el resultado y, con chart_id, apunta la identidad a él.

        Returns:
            clave de contenido, o None si el store falló
        """
        ttl = self.ttl if ttl is None else ttl
        key = self.content_key(sql, datasource_id, tables)
        entry = CacheEntry(
            data=rows,
            sql=sql,
            execution_time=execution_time,
            row_count=len(rows),
            query=query,
            selected_tables=list(tables or []),
            datasource_id=datasource_id,
        )
        try:
            self.store.set(key, entry.to_dict(), ttl)
            if chart_id:
                old_key = self.store.get(self.identity_key(chart_id))
                if old_key and old_key != key:
                    self._detach(chart_id, old_key)
                self._attach(chart_id, key, ttl)
                self.store.set(self.identity_key(chart_id), key, ttl)
            logger.info(f"Cache SET: {key[-12:]} chart={chart_id} filas={len(rows)}")
            return key
        except Exception as e:
            logger.warning(f"Cache set falló (chart={chart_id}): {e}")
            return None

    def get_by_content(
        self, sql: str, datasource_id: str, tables: List[str]
    ) -> Optional[CacheEntry]:
        key = self.content_key(sql, datasource_id, tables)
        try:
            data = self.store.get(key)
        except Exception as e:
            logger.warning(f"Cache get falló: {e}")
            return None
        if not data:
            logger.debug(f"Cache MISS: {key[-12:]}")
            return None
        logger.debug(f"Cache HIT: {key[-12:]}")
        return CacheEntry.from_dict(data)

    def get_by_identity(self, chart_id: str) -> Optional[CacheEntry]:
        try:
            key = self.store.get(self.identity_key(chart_id))
            if not key:
                return None
            data = self.store.get(key)
        except Exception as e:
            logger.warning(f"Cache get falló (chart={chart_id}): {e}")
            return None
        return CacheEntry.from_dict(data) if data else None

    def invalidate_by_identity(self, chart_id: str) -> None:
        try:
            key = self.store.get(self.identity_key(chart_id))
            if key:
                self._detach(chart_id, key)
            self.store.delete(self.identity_key(chart_id))
            logger.info(f"Cache invalidado para chart {chart_id}")
        except Exception as e:
            logger.warning(f"Invalidación falló (chart={chart_id}): {e}")

    def invalidate_by_content(
        self, sql: str, datasource_id: str, tables: List[str]
    ) -> None:
        key = self.content_key(sql, datasource_id, tables)
        try:
            self.store.delete(key)
            self.store.delete(self.refs_key(key))
        except Exception as e:
            logger.warning(f"Invalidación por contenido falló: {e}")

    def on_chart_modified(
        self, chart_id: str, new_sql: str, datasource_id: str, tables: List[str]
    ) -> None:
        """
        Retira el estado viejo del chart y deja la identidad apuntando a la
        clave del SQL nuevo. Hasta la próxima ejecución exitosa la identidad
        resuelve a nada, nunca a datos viejos.
        """
        new_key = self.content_key(new_sql, datasource_id, tables)
        try:
            old_key = self.store.get(self.identity_key(chart_id))
            if old_key:
                # Mismo SQL: la entrada sigue siendo válida
                self._detach(chart_id, old_key, keep_entry=old_key == new_key)
            self._attach(chart_id, new_key, self.ttl)
            self.store.set(self.identity_key(chart_id), new_key, self.ttl)
            logger.info(f"Chart {chart_id} modificado: cache preparado para SQL nuevo")
        except Exception as e:
            logger.warning(f"onChartModified falló (chart={chart_id}): {e}")

    def refresh(
        self,
        chart_id: str,
        rows: List[Dict[str, Any]],
        execution_time: int,
        ttl: Optional[int] = None,
    ) -> Optional[CacheEntry]:
        """Actualiza en el lugar la entrada del chart (mismo SQL, filas nuevas)"""
        ttl = self.ttl if ttl is None else ttl
        try:
            key = self.store.get(self.identity_key(chart_id))
            if not key:
                logger.warning(f"Sin referencia de cache para chart {chart_id}")
                return None
            data = self.store.get(key)
            if not data:
                return None
            entry = CacheEntry.from_dict(data)
            refreshed = CacheEntry(
                data=rows,
                sql=entry.sql,
                execution_time=execution_time,
                row_count=len(rows),
                query=entry.query,
                selected_tables=entry.selected_tables,
                datasource_id=entry.datasource_id,
            )
            self.store.set(key, refreshed.to_dict(), ttl)
            self.store.set(self.identity_key(chart_id), key, ttl)
            logger.info(f"Cache refrescado para chart {chart_id}")
            return refreshed
        except Exception as e:
            logger.warning(f"Refresh de cache falló (chart={chart_id}): {e}")
            return None

    def stats(self) -> Dict[str, int]:
        try:
            keys = self.store.keys(self.prefix)
        except Exception as e:
            logger.warning(f"Stats de cache fallaron: {e}")
            return {"total_keys": 0, "chart_keys": 0, "entry_keys": 0}
        identity = sum(1 for k in keys if k.startswith(f"{self.prefix}id:"))
        refs = sum(1 for k in keys if k.startswith(f"{self.prefix}refs:"))
        return {
            "total_keys": len(keys),
            "chart_keys": identity,
            "entry_keys": len(keys) - identity - refs,
        }
