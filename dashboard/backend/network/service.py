"""Read access to cluster dependencies and network resources."""

from __future__ import annotations

import json
from typing import Any

from nautilus.db.connection import Database
from dashboard.backend.schemas import (
    DependencyResponse,
    IngressControllerResponse,
    LoadBalancerResponse,
    NetworkPolicyResponse,
    NetworkResourcesResponse,
    RouteResponse,
)

# URL kind -> (table, response model)
NETWORK_KINDS: dict[str, tuple[str, type]] = {
    "ingress-controllers": ("network_ingress_controllers", IngressControllerResponse),
    "load-balancers": ("network_load_balancers", LoadBalancerResponse),
    "routes": ("network_routes", RouteResponse),
    "policies": ("network_policies", NetworkPolicyResponse),
}


class NetworkService:
    """Queries the four network resource tables."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def list_resources(self, kind: str, cluster_id: str | None = None) -> list[Any]:
        table, model = NETWORK_KINDS[kind]
        if cluster_id is None:
            rows = self._db.fetchall(f"SELECT * FROM {table} ORDER BY id")  # noqa: S608
        else:
            rows = self._db.fetchall(
                f"SELECT * FROM {table} WHERE cluster_id = ? ORDER BY id",  # noqa: S608
                (cluster_id,),
            )
        return [model.model_validate(_row_to_dict(r)) for r in rows]

    def get_resource(self, kind: str, resource_id: int) -> Any | None:
        table, model = NETWORK_KINDS[kind]
        row = self._db.fetchone(f"SELECT * FROM {table} WHERE id = ?", (resource_id,))  # noqa: S608
        if row is None:
            return None
        return model.model_validate(_row_to_dict(row))

    def combined(self, cluster_id: str | None = None) -> NetworkResourcesResponse:
        return NetworkResourcesResponse(
            ingress_controllers=self.list_resources("ingress-controllers", cluster_id),
            load_balancers=self.list_resources("load-balancers", cluster_id),
            routes=self.list_resources("routes", cluster_id),
            policies=self.list_resources("policies", cluster_id),
        )


class DependencyService:
    """Queries ``cluster_dependencies`` joined with cluster names."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def list_dependencies(
        self,
        cluster_id: str | None = None,
        dep_type: str | None = None,
    ) -> list[DependencyResponse]:
        conditions: list[str] = []
        params: list[Any] = []
        if cluster_id is not None:
            conditions.append("d.cluster_id = ?")
            params.append(cluster_id)
        if dep_type is not None:
            conditions.append("d.type = ?")
            params.append(dep_type)

        where = ""
        if conditions:
            where = "WHERE " + " AND ".join(conditions)

        rows = self._db.fetchall(
            f"""SELECT d.*, COALESCE(c.name, '') AS cluster_name
                FROM cluster_dependencies d
                LEFT JOIN clusters c ON d.cluster_id = c.cluster_id
                {where}
                ORDER BY d.type, d.name""",  # noqa: S608
            tuple(params),
        )
        return [DependencyResponse.model_validate(_row_to_dict(r)) for r in rows]

    def get_dependency(self, dependency_id: int) -> DependencyResponse | None:
        row = self._db.fetchone(
            """SELECT d.*, COALESCE(c.name, '') AS cluster_name
               FROM cluster_dependencies d
               LEFT JOIN clusters c ON d.cluster_id = c.cluster_id
               WHERE d.id = ?""",
            (dependency_id,),
        )
        if row is None:
            return None
        return DependencyResponse.model_validate(_row_to_dict(row))


def _row_to_dict(row: Any) -> dict[str, Any]:
    data = dict(row)
    for key in ("metadata", "ip_addresses"):
        if key in data:
            data[key] = json.loads(data[key]) if data[key] else ({} if key == "metadata" else [])
    return data
