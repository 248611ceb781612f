# ============================================================================
# CLAUDE CONTEXT - PYDANTIC TO SQL GENERATOR
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - DDL generation from Pydantic models
# PURPOSE: Generate PostgreSQL CREATE statements from Pydantic models
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: PydanticToSQL
# DEPENDENCIES: pydantic, psycopg, annotated_types
# ============================================================================
"""
Pydantic to PostgreSQL Schema Generator.

Pydantic models are the SINGLE SOURCE OF TRUTH for schema.

Model Metadata Convention:
    Models define SQL metadata via ClassVar attributes:
    - __sql_table__: Table name
    - __sql_schema__: Default schema name (overridden by the generator's schema_name)
    - __sql_primary_key__: Primary key column(s) - string or list
    - __sql_foreign_keys__: Dict of {column: "[schema.]table(column)"}
    - __sql_indexes__: List of (name, columns[, partial_where]) tuples or
      {name, columns, partial_where, unique} dicts
    - __sql_serial_columns__: Columns filled from a sequence
    - __sql_column_types__: Explicit PostgreSQL types by column

Usage:
    generator = PydanticToSQL(schema_name="graphile_worker_helpers")
    for stmt in generator.generate_all():
        await cur.execute(stmt)
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type, Union, get_args, get_origin

from annotated_types import MaxLen
from psycopg import sql
from pydantic import BaseModel
from pydantic.fields import FieldInfo

from core.schema.ddl_utils import IndexBuilder, SchemaUtils

logger = logging.getLogger(__name__)

_FK_PATTERN = re.compile(r"^(?:(\w+)\.)?(\w+)\((\w+)\)$")


class PydanticToSQL:
    """
    Convert Pydantic models to PostgreSQL DDL statements.

    Enum fields are stored as TEXT holding the enum value, so policy
    strings stay readable by store-side triggers without a custom type.
    """

    TYPE_MAP = {
        str: "TEXT",
        int: "INTEGER",
        float: "DOUBLE PRECISION",
        bool: "BOOLEAN",
        datetime: "TIMESTAMPTZ",
        dict: "JSONB",
        Dict: "JSONB",
    }

    SERIAL_TYPES = {
        "INTEGER": "SERIAL",
        "BIGINT": "BIGSERIAL",
    }

    def __init__(
        self,
        schema_name: str = "graphile_worker_helpers",
        models: Optional[Sequence[Type[BaseModel]]] = None,
    ):
        """
        Initialize the generator.

        Args:
            schema_name: Schema that receives every generated table
            models: Models to generate, in dependency order
                    (defaults to JobDependency, JobResult)
        """
        self.schema_name = schema_name
        self._models = list(models) if models is not None else None

    @property
    def models(self) -> List[Type[BaseModel]]:
        if self._models is None:
            from core.models import JobDependency, JobResult
            self._models = [JobDependency, JobResult]
        return self._models

    # =========================================================================
    # METADATA EXTRACTION
    # =========================================================================

    @staticmethod
    def get_model_metadata(model: Type[BaseModel]) -> Dict[str, Any]:
        """
        Extract SQL DDL metadata from a Pydantic model.

        Args:
            model: Pydantic model class

        Returns:
            Dict with table, schema, primary_key, foreign_keys, indexes,
            serial_columns, column_types
        """
        metadata = {
            "table": getattr(model, "__sql_table__", None),
            "schema": getattr(model, "__sql_schema__", None),
            "primary_key": getattr(model, "__sql_primary_key__", []),
            "foreign_keys": getattr(model, "__sql_foreign_keys__", {}),
            "indexes": getattr(model, "__sql_indexes__", []),
            "serial_columns": getattr(model, "__sql_serial_columns__", []),
            "column_types": getattr(model, "__sql_column_types__", {}),
        }

        if isinstance(metadata["primary_key"], str):
            metadata["primary_key"] = [metadata["primary_key"]]

        return metadata

    # =========================================================================
    # TYPE CONVERSION
    # =========================================================================

    def python_type_to_sql(self, field_type: Any, field_info: FieldInfo) -> str:
        """
        Convert a Python annotation to a PostgreSQL type.

        Args:
            field_type: Annotation from the Pydantic model
            field_info: Pydantic field information

        Returns:
            PostgreSQL type string
        """
        actual_type = field_type
        origin = get_origin(field_type)

        # Unwrap Optional
        if origin is Union:
            args = [a for a in get_args(field_type) if a is not type(None)]
            actual_type = args[0] if len(args) == 1 else Any
            origin = get_origin(actual_type)

        if origin in (list, List):
            item_args = get_args(actual_type)
            if item_args and item_args[0] is str:
                return "TEXT[]"
            return "JSONB"
        if origin in (dict, Dict):
            return "JSONB"

        if actual_type is str:
            for constraint in field_info.metadata or []:
                if isinstance(constraint, MaxLen):
                    return f"VARCHAR({constraint.max_length})"
            return "TEXT"

        if isinstance(actual_type, type) and issubclass(actual_type, Enum):
            return "TEXT"

        return self.TYPE_MAP.get(actual_type, "JSONB")

    def column_type(self, name: str, field_info: FieldInfo, meta: Dict[str, Any]) -> str:
        """Resolve a column's type: explicit override, then annotation, then SERIAL."""
        sql_type = meta["column_types"].get(name) or self.python_type_to_sql(
            field_info.annotation, field_info
        )
        if name in meta["serial_columns"]:
            sql_type = self.SERIAL_TYPES.get(sql_type, sql_type)
        return sql_type

    @staticmethod
    def is_nullable(field_info: FieldInfo) -> bool:
        """Optional annotations and required-less None defaults are nullable."""
        if get_origin(field_info.annotation) is Union and type(None) in get_args(field_info.annotation):
            return True
        return not field_info.is_required() and field_info.default is None

    # =========================================================================
    # TABLE GENERATION
    # =========================================================================

    def _qualify_reference(self, reference: str) -> sql.Composed:
        """Turn "[schema.]table(column)" into a qualified REFERENCES target."""
        match = _FK_PATTERN.match(reference)
        if not match:
            raise ValueError(f"Unparseable foreign key reference: {reference!r}")
        ref_schema, ref_table, ref_column = match.groups()
        return sql.SQL("{}.{} ({})").format(
            sql.Identifier(ref_schema or self.schema_name),
            sql.Identifier(ref_table),
            sql.Identifier(ref_column),
        )

    def generate_table(self, model: Type[BaseModel]) -> sql.Composed:
        """
        Generate CREATE TABLE DDL from a Pydantic model.

        Args:
            model: Pydantic model with __sql_* metadata

        Returns:
            sql.Composed CREATE TABLE statement
        """
        meta = self.get_model_metadata(model)
        table_name = meta["table"]
        primary_key = meta["primary_key"]

        if not table_name:
            raise ValueError(f"Model {model.__name__} missing __sql_table__ attribute")

        logger.debug(f"Generating table {self.schema_name}.{table_name} from {model.__name__}")

        columns = []
        for field_name, field_info in model.model_fields.items():
            sql_type = self.column_type(field_name, field_info, meta)
            parts = [sql.Identifier(field_name), sql.SQL(" " + sql_type)]

            if not self.is_nullable(field_info) and field_name not in primary_key:
                parts.append(sql.SQL(" NOT NULL"))

            default = field_info.default
            if isinstance(default, bool):
                parts.append(sql.SQL(" DEFAULT true" if default else " DEFAULT false"))
            elif isinstance(default, Enum):
                parts.extend([sql.SQL(" DEFAULT "), sql.Literal(default.value)])
            elif isinstance(default, (str, int, float)):
                parts.extend([sql.SQL(" DEFAULT "), sql.Literal(default)])

            columns.append(sql.Composed(parts))

        constraints = []
        if primary_key:
            constraints.append(
                sql.SQL("PRIMARY KEY ({})").format(
                    sql.SQL(", ").join(sql.Identifier(col) for col in primary_key)
                )
            )

        for fk_column, fk_reference in meta["foreign_keys"].items():
            constraints.append(
                sql.SQL("FOREIGN KEY ({}) REFERENCES {} ON DELETE CASCADE").format(
                    sql.Identifier(fk_column),
                    self._qualify_reference(fk_reference),
                )
            )

        return sql.SQL("CREATE TABLE IF NOT EXISTS {}.{} ({})").format(
            sql.Identifier(self.schema_name),
            sql.Identifier(table_name),
            sql.SQL(", ").join(columns + constraints),
        )

    # =========================================================================
    # INDEX GENERATION
    # =========================================================================

    def generate_indexes(self, model: Type[BaseModel]) -> List[sql.Composed]:
        """
        Generate CREATE INDEX statements from a model's __sql_indexes__.

        Entries are (name, columns[, partial_where]) tuples, or dicts with
        name, columns, partial_where and unique keys.
        """
        meta = self.get_model_metadata(model)
        result = []

        for idx_def in meta["indexes"]:
            if isinstance(idx_def, dict):
                name = idx_def.get("name")
                columns = idx_def.get("columns", [])
                partial_where = idx_def.get("partial_where")
                unique = idx_def.get("unique", False)
            else:
                name = idx_def[0]
                columns = idx_def[1] if len(idx_def) > 1 else []
                partial_where = idx_def[2] if len(idx_def) > 2 else None
                unique = False

            if not name:
                raise ValueError(f"{model.__name__} declares an index without a name")

            result.append(IndexBuilder.btree(
                self.schema_name, meta["table"], columns,
                name=name,
                partial_where=partial_where,
                unique=unique,
            ))

        return result

    # =========================================================================
    # COMPLETE SCHEMA GENERATION
    # =========================================================================

    def generate_drop_schema(self) -> sql.Composed:
        """
        Generate DROP SCHEMA CASCADE statement.

        WARNING: This destroys ALL data in the schema!
        """
        return SchemaUtils.drop_schema(self.schema_name)

    def generate_all(self) -> List[sql.Composed]:
        """
        Generate complete DDL for the helper tables.

        Returns:
            List of sql.Composed statements ready for execution
        """
        statements = [SchemaUtils.create_schema(self.schema_name)]

        for model in self.models:
            statements.append(self.generate_table(model))
        for model in self.models:
            statements.extend(self.generate_indexes(model))

        logger.info(f"Generated {len(statements)} DDL statements for schema {self.schema_name}")
        return statements

    def table_names(self) -> List[str]:
        """Tables generate_all() creates, in creation order."""
        return [self.get_model_metadata(m)["table"] for m in self.models]


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ['PydanticToSQL']
