"""
Mapping configuration service.

Mapping configurations live in `configuraciones_mapeo`. Operations never
work on the stored row directly: get_active_definition returns a frozen
MappingDefinition snapshot resolved once per operation.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.mapping import (
    CanonicalField,
    MappingConfigCreate,
    MappingConfigUpdate,
    MappingConfigResponse,
    MappingDefinition,
)
from exceptions import (
    DatabaseError,
    MappingConfigNotFoundError,
    MappingConfigInactiveError,
)

logger = structlog.get_logger(__name__)


class MappingConfigService:
    """
    Mapping configuration business logic.

    Handles CRUD per tenant and snapshot resolution for operations.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "configuraciones_mapeo"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(self, tenant_id: int, active_only: bool = False) -> list[MappingConfigResponse]:
        """
        Get all mapping configurations of a tenant, newest first.

        Args:
            tenant_id: Owning company
            active_only: Only return active configurations
        """
        logger.info("getting_mapping_configs", tenant_id=tenant_id, active_only=active_only)

        try:
            query = self.db.table(self.table).select("*").eq("empresa_id", tenant_id)

            if active_only:
                query = query.eq("activa", True)

            result = query.order("created_at", desc=True).execute()

            configs = [self._row_to_response(row) for row in result.data]

            logger.info("mapping_configs_retrieved", count=len(configs))

            return configs

        except Exception as e:
            logger.error("get_mapping_configs_failed", tenant_id=tenant_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, config_id: int, tenant_id: int) -> MappingConfigResponse:
        """
        Get a single mapping configuration.

        Raises:
            MappingConfigNotFoundError: If it doesn't exist in this tenant
        """
        logger.debug("getting_mapping_config", config_id=config_id, tenant_id=tenant_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", config_id)
                .eq("empresa_id", tenant_id)
                .limit(1)
                .execute()
            )

        except Exception as e:
            logger.error("get_mapping_config_failed", config_id=config_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise MappingConfigNotFoundError(config_id)

        return self._row_to_response(result.data[0])

    def get_active_definition(self, config_id: int, tenant_id: int) -> MappingDefinition:
        """
        Resolve the mapping snapshot used by one operation.

        Raises:
            MappingConfigNotFoundError: If it doesn't exist in this tenant
            MappingConfigInactiveError: If it is disabled
        """
        config = self.get_by_id(config_id, tenant_id)

        if not config.active:
            logger.warning("mapping_config_inactive", config_id=config_id)
            raise MappingConfigInactiveError(config_id)

        return config.to_definition()

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: MappingConfigCreate, tenant_id: int) -> MappingConfigResponse:
        """
        Create a mapping configuration.

        Raises:
            DatabaseError: If insert fails
        """
        logger.info("creating_mapping_config", name=data.name, tenant_id=tenant_id)

        try:
            result = (
                self.db.table(self.table)
                .insert({
                    "empresa_id": tenant_id,
                    "nombre": data.name,
                    "descripcion": data.description,
                    "sistema": data.system.value,
                    "tipo_archivo": data.file_format.value,
                    "activa": data.active,
                    "mapeos": _mappings_to_json(data.mappings),
                })
                .execute()
            )

            config = self._row_to_response(result.data[0])

            logger.info("mapping_config_created", config_id=config.id)

            return config

        except Exception as e:
            logger.error("create_mapping_config_failed", name=data.name, error=str(e))
            raise DatabaseError("insert", str(e))

    def update(
        self,
        config_id: int,
        tenant_id: int,
        data: MappingConfigUpdate
    ) -> MappingConfigResponse:
        """
        Update a mapping configuration.

        Only provided fields are changed. A new mappings dict replaces the
        stored one as a whole; runs already in flight keep their snapshot.

        Raises:
            MappingConfigNotFoundError: If it doesn't exist in this tenant
        """
        logger.info("updating_mapping_config", config_id=config_id)

        existing = self.get_by_id(config_id, tenant_id)

        update_data = {}
        if data.name is not None:
            update_data["nombre"] = data.name
        if data.description is not None:
            update_data["descripcion"] = data.description
        if data.system is not None:
            update_data["sistema"] = data.system.value
        if data.file_format is not None:
            update_data["tipo_archivo"] = data.file_format.value
        if data.active is not None:
            update_data["activa"] = data.active
        if data.mappings is not None:
            update_data["mapeos"] = _mappings_to_json(data.mappings)

        if not update_data:
            return existing

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", config_id)
                .eq("empresa_id", tenant_id)
                .execute()
            )

            config = self._row_to_response(result.data[0])

            logger.info(
                "mapping_config_updated",
                config_id=config_id,
                fields=list(update_data.keys())
            )

            return config

        except Exception as e:
            logger.error("update_mapping_config_failed", config_id=config_id, error=str(e))
            raise DatabaseError("update", str(e))

    def delete(self, config_id: int, tenant_id: int) -> bool:
        """
        Delete a mapping configuration.

        Existing operation logs keep their configuracion_mapeo_id.

        Raises:
            MappingConfigNotFoundError: If it doesn't exist in this tenant
        """
        logger.info("deleting_mapping_config", config_id=config_id)

        self.get_by_id(config_id, tenant_id)

        try:
            (
                self.db.table(self.table)
                .delete()
                .eq("id", config_id)
                .eq("empresa_id", tenant_id)
                .execute()
            )

            logger.info("mapping_config_deleted", config_id=config_id)

            return True

        except Exception as e:
            logger.error("delete_mapping_config_failed", config_id=config_id, error=str(e))
            raise DatabaseError("delete", str(e))

    # ===================
    # HELPER METHODS
    # ===================

    def _row_to_response(self, row: dict) -> MappingConfigResponse:
        """Convert database row to MappingConfigResponse."""
        return MappingConfigResponse(
            id=row["id"],
            tenant_id=row["empresa_id"],
            name=row["nombre"],
            description=row.get("descripcion"),
            system=row["sistema"],
            file_format=row["tipo_archivo"],
            active=row.get("activa", True),
            mappings=_mappings_from_json(row.get("mapeos"), row["id"]),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )


def _mappings_to_json(mappings: dict[CanonicalField, str]) -> dict[str, str]:
    return {field.value: column for field, column in mappings.items()}


def _mappings_from_json(raw: Optional[dict], config_id: int) -> dict[CanonicalField, str]:
    """Stored JSON -> typed mapping. Keys outside CanonicalField are dropped."""
    mappings: dict[CanonicalField, str] = {}
    for key, column in (raw or {}).items():
        try:
            field = CanonicalField(key)
        except ValueError:
            logger.warning("unknown_mapping_field_ignored", config_id=config_id, field=key)
            continue
        if column and str(column).strip():
            mappings[field] = str(column).strip()
    return mappings


# Singleton instance
_mapping_config_service: Optional[MappingConfigService] = None


def get_mapping_config_service() -> MappingConfigService:
    """Get or create MappingConfigService instance."""
    global _mapping_config_service
    if _mapping_config_service is None:
        _mapping_config_service = MappingConfigService()
    return _mapping_config_service
