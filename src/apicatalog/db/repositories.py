from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Collection

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apicatalog.db import models as db_models
from apicatalog.domain.models import (
    ClusterAddress,
    DescriptionPath,
    Operation,
    OperationParameter,
    ParameterLocation,
    ServiceIdentity,
    ServiceRecord,
    ServiceStatus,
    Specification,
)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on read
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def operation_to_dict(operation: Operation) -> dict[str, Any]:
    return {
        "operation_id": operation.operation_id,
        "method": operation.method,
        "path": operation.path,
        "summary": operation.summary,
        "description": operation.description,
        "tag": operation.tag,
        "parameters": [
            {
                "name": p.name,
                "in": p.location.value,
                "required": p.required,
                "description": p.description,
                "schema": p.schema,
            }
            for p in operation.parameters
        ],
        "request_body_schema": operation.request_body_schema,
        "response_schema": operation.response_schema,
    }


def operation_from_dict(data: dict[str, Any]) -> Operation:
    parameters = []
    for p in data.get("parameters") or []:
        location = ParameterLocation.parse(p.get("in"))
        if location is None:
            continue
        parameters.append(
            OperationParameter(
                name=p["name"],
                location=location,
                required=bool(p.get("required")),
                description=p.get("description"),
                schema=p.get("schema"),
            )
        )

    return Operation(
        operation_id=data["operation_id"],
        method=data["method"],
        path=data["path"],
        summary=data.get("summary"),
        description=data.get("description"),
        tag=data.get("tag"),
        parameters=tuple(parameters),
        request_body_schema=data.get("request_body_schema"),
        response_schema=data.get("response_schema"),
    )


def _to_record(row: db_models.ServiceModel) -> ServiceRecord:
    specification = None
    if row.specification is not None:
        spec_row = row.specification
        specification = Specification(
            raw_document=spec_row.raw_document,
            title=spec_row.title,
            version=spec_row.version,
            operations=tuple(operation_from_dict(op) for op in spec_row.operations or []),
            fetched_at=_as_utc(spec_row.fetched_at),
        )

    return ServiceRecord.reconstitute(
        ServiceIdentity(row.namespace, row.name),
        ClusterAddress(row.cluster_ip, row.cluster_port),
        DescriptionPath.of(row.description_path),
        _as_utc(row.discovered_at),
        ServiceStatus(row.status),
        _as_utc(row.last_checked_at),
        specification,
    )


@dataclass(slots=True)
class SqlCatalogStore:
    """Catalog store backed by SQLAlchemy; one session per call."""

    session_factory: async_sessionmaker[AsyncSession]

    async def find_by_id(self, identity: ServiceIdentity) -> ServiceRecord | None:
        async with self.session_factory() as session:
            row = await session.get(db_models.ServiceModel, identity.as_string())
            return _to_record(row) if row is not None else None

    async def save(self, record: ServiceRecord) -> None:
        async with self.session_factory() as session, session.begin():
            row = await session.get(db_models.ServiceModel, record.identity.as_string())
            if row is None:
                row = db_models.ServiceModel(
                    id=record.identity.as_string(),
                    namespace=record.identity.namespace,
                    name=record.identity.name,
                    discovered_at=record.discovered_at,
                )
                session.add(row)

            row.cluster_ip = record.address.ip
            row.cluster_port = record.address.port
            row.description_path = record.description_path.value
            row.status = record.status.value
            row.last_checked_at = record.last_checked_at

            spec = record.specification
            if spec is None:
                row.specification = None
                return

            operations = [operation_to_dict(op) for op in spec.operations]
            if row.specification is None:
                row.specification = db_models.SpecificationModel(
                    title=spec.title,
                    version=spec.version,
                    raw_document=spec.raw_document,
                    operations=operations,
                    fetched_at=spec.fetched_at,
                )
            else:
                row.specification.title = spec.title
                row.specification.version = spec.version
                row.specification.raw_document = spec.raw_document
                row.specification.operations = operations
                row.specification.fetched_at = spec.fetched_at

    async def delete_not_in(
        self,
        identities: Collection[ServiceIdentity],
        namespaces: Collection[str] | None = None,
    ) -> int:
        keep = {identity.as_string() for identity in identities}

        async with self.session_factory() as session, session.begin():
            stmt = select(db_models.ServiceModel.id)
            if namespaces:
                stmt = stmt.where(db_models.ServiceModel.namespace.in_(list(namespaces)))
            result = await session.execute(stmt)
            stale = [service_id for service_id in result.scalars() if service_id not in keep]

            if stale:
                # SQLite only enforces ON DELETE CASCADE with the foreign_keys pragma
                await session.execute(
                    delete(db_models.SpecificationModel).where(
                        db_models.SpecificationModel.service_id.in_(stale)
                    )
                )
                await session.execute(
                    delete(db_models.ServiceModel).where(db_models.ServiceModel.id.in_(stale))
                )
        return len(stale)

    async def list_all(self) -> list[ServiceRecord]:
        return await self._select()

    async def find_by_status(self, status: ServiceStatus) -> list[ServiceRecord]:
        return await self._select(db_models.ServiceModel.status == status.value)

    async def find_by_namespace(self, namespace: str) -> list[ServiceRecord]:
        return await self._select(db_models.ServiceModel.namespace == namespace)

    async def delete_by_id(self, identity: ServiceIdentity) -> None:
        async with self.session_factory() as session, session.begin():
            row = await session.get(db_models.ServiceModel, identity.as_string())
            if row is not None:
                await session.delete(row)

    async def exists(self, identity: ServiceIdentity) -> bool:
        async with self.session_factory() as session:
            stmt = select(db_models.ServiceModel.id).where(
                db_models.ServiceModel.id == identity.as_string()
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except (SQLAlchemyError, ConnectionError, TimeoutError, OSError):
            return False

    async def _select(self, *criteria: Any) -> list[ServiceRecord]:
        async with self.session_factory() as session:
            stmt = (
                select(db_models.ServiceModel)
                .where(*criteria)
                .order_by(db_models.ServiceModel.namespace, db_models.ServiceModel.name)
            )
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars()]
