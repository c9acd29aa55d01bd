# Introspección de schema
from core.services.schema.introspector import SchemaIntrospector

__all__ = ["SchemaIntrospector"]
