# CLI Adapter - Entry point por línea de comandos

import json
import logging
import argparse
from typing import List, Optional

from adapters.factory import get_container
from core.domain.errors import ChartSQLError
from core.domain.query import TextToSQLRequest
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ChartSQL - Texto a SQL para charts")
    parser.add_argument("--datasource", "-d", required=True, help="ID del datasource registrado")
    parser.add_argument("--test-connection", action="store_true", help="Prueba la conexión")
    parser.add_argument("--schema", action="store_true", help="Lista schemas y tablas")
    parser.add_argument("--table", help="Detalle de una tabla (schema.tabla)")
    parser.add_argument("--query", "-q", help="Pregunta en lenguaje natural")
    parser.add_argument("--tables", "-t", help="Tablas separadas por coma (schema.tabla)")
    parser.add_argument("--provider", help="Proveedor de LLM")
    parser.add_argument("--model", help="Modelo de LLM")
    parser.add_argument("--chart-id", help="ID del chart para cachear por identidad")
    parser.add_argument("--force-refresh", action="store_true", help="Ignora el cache")
    parser.add_argument("--max-retries", type=int, help="Reintentos de generación")
    return parser


def parse_tables(raw: Optional[str]) -> List[str]:
    return [t.strip() for t in (raw or "").split(",") if t.strip()]


def _print(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    container = get_container()

    try:
        service = container.datasources
        config = service.resolve_config(args.datasource)

        # Modo test de conexión
        if args.test_connection:
            result = service.test_connection(config)
            _print(result.to_dict())
            return 0 if result.success else 1

        # Modo schema
        if args.schema:
            schema = service.get_schema(args.datasource)
            print(f"\nSchemas: {', '.join(schema.schemas)}")
            for table in schema.tables:
                rows = table.row_count if table.row_count is not None else "?"
                print(f"   {table.qualified_name} ({len(table.columns)} columnas, ~{rows} filas)")
            return 0

        # Modo tabla
        if args.table:
            schema_name, _, table_name = args.table.rpartition(".")
            details = service.get_table_details(args.datasource, schema_name, table_name)
            _print(details["table"].to_dict())
            for warning in details["warnings"]:
                print(f"Aviso: {warning}")
            return 0

        # Modo query
        query = args.query or input("Consulta: ").strip()
        tables = parse_tables(args.tables)
        if not query or not tables:
            print("Error: se requieren --query y --tables")
            return 2

        request = TextToSQLRequest(
            query=query,
            selected_tables=tables,
            datasource_id=args.datasource,
            datasource_config=config,
            ai_provider=args.provider,
            ai_model=args.model,
            max_retries=args.max_retries,
            chart_id=args.chart_id,
            force_refresh=args.force_refresh,
        )
        result = container.pipeline.generate_and_execute(request)
    except ChartSQLError as e:
        logger.error(f"[{e.code}] {e.message}")
        return 1

    print(f"\n{'=' * 50}")
    print(f"Query: {query}")
    print(f"{'=' * 50}")
    if not result.success:
        print(f"Error [{result.error_code}]: {result.error}")
        return 1
    print(f"SQL: {result.sql}")
    print(f"Filas: {result.row_count} | reintentos: {result.retry_count} | cache: {result.from_cache}")
    _print(result.data[:20])
    return 0
