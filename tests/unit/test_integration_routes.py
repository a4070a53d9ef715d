"""
API tests for the integration routes.

Run: pytest tests/unit/test_integration_routes.py -v
"""

from io import BytesIO
import json

import pytest
from openpyxl import load_workbook

from tests.factories import CustomerFactory, FreightFactory, MappingConfigFactory, csv_bytes

HEADERS = {"X-Empresa-Id": "1", "X-Usuario-Id": "7"}
CSV_HEADER = ["FOLIO", "CLIENTE", "ORIGEN", "DESTINO", "PRECIO", "KM"]


@pytest.fixture
def client(test_client_with_mock_db, mock_db):
    mock_db.set_table_data("configuraciones_mapeo", [MappingConfigFactory.create(id=1)])
    mock_db.set_table_data("clientes", [CustomerFactory.create(id=1, nombre="Transportes ACME")])
    mock_db.set_table_data("fletes", [
        FreightFactory.create(id=20, folio="F-00020", precio_cliente=1000.0, km_reales=900.0),
    ])
    return test_client_with_mock_db


def upload(content: bytes, name: str = "fletes.csv"):
    return {"file": (name, content, "text/csv")}


# ===================
# MAPPINGS
# ===================

class TestMappingRoutes:
    """Tests for /api/integrations/mappings."""

    def test_create_and_get(self, client):
        response = client.post("/api/integrations/mappings", headers=HEADERS, json={
            "nombre": "Microsip",
            "sistema": "MICROSIP",
            "tipoArchivo": "XML",
            "mapeos": {"folio": "Folio", "origen": "Origen"},
        })

        assert response.status_code == 201
        created = response.json()
        assert created["nombre"] == "Microsip"
        assert created["empresaId"] == 1
        assert created["mapeos"] == {"folio": "Folio", "origen": "Origen"}

        fetched = client.get(f"/api/integrations/mappings/{created['id']}", headers=HEADERS)
        assert fetched.status_code == 200
        assert fetched.json()["tipoArchivo"] == "XML"

    def test_invalid_mapping_is_422(self, client):
        response = client.post("/api/integrations/mappings", headers=HEADERS, json={
            "nombre": "Mala",
            "sistema": "OTRO",
            "tipoArchivo": "CSV",
            "mapeos": {"placas": "PLACAS"},
        })

        assert response.status_code == 422

    def test_list(self, client):
        response = client.get("/api/integrations/mappings", headers=HEADERS)

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [1]

    def test_not_found_uses_error_format(self, client):
        response = client.get("/api/integrations/mappings/99", headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "MAPPING_CONFIG_NOT_FOUND"

    def test_patch_and_delete(self, client, mock_db):
        patched = client.patch("/api/integrations/mappings/1", headers=HEADERS, json={"activa": False})
        assert patched.status_code == 200
        assert patched.json()["activa"] is False

        deleted = client.delete("/api/integrations/mappings/1", headers=HEADERS)
        assert deleted.status_code == 204
        assert mock_db.rows("configuraciones_mapeo") == []

    def test_tenant_header_is_required(self, client):
        response = client.get("/api/integrations/mappings")

        assert response.status_code == 422


# ===================
# IMPORT
# ===================

class TestImportRoutes:
    """Tests for preview and import."""

    def test_preview(self, client, mock_db):
        content = csv_bytes([CSV_HEADER, ["F-00050", "Transportes ACME", "CDMX", "Toluca", "900", "60"]])

        response = client.post(
            "/api/integrations/import/preview",
            headers=HEADERS,
            files=upload(content),
            data={"configuracionMapeoId": "1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["totalRegistros"] == 1
        assert body["preview"][0]["linea"] == 2
        assert body["preview"][0]["datosMapeados"]["destino"] == "Toluca"
        assert len(mock_db.rows("fletes")) == 1

    def test_import(self, client, mock_db):
        content = csv_bytes([
            CSV_HEADER,
            ["F-00020", "Transportes ACME", "CDMX", "Monterrey", "1100", "900"],
            ["F-00050", "Transportes ACME", "CDMX", "Toluca", "900", "60"],
            ["F-00051", "Transportes ACME", "", "Toluca", "900", "60"],
        ])

        response = client.post(
            "/api/integrations/import",
            headers=HEADERS,
            files=upload(content),
            data={"configuracionMapeoId": "1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["totalRegistros"] == 3
        assert body["exitosos"] == 1
        assert body["actualizados"] == 1
        assert body["errores"] == 1
        assert body["detallesErrores"] == [{"linea": 4, "campo": "origen", "error": "Origin is required"}]
        assert mock_db.rows("integracion_logs")[0]["usuario_id"] == 7

    def test_unsupported_content_is_422(self, client, mock_db):
        mock_db.set_table_data("configuraciones_mapeo", [MappingConfigFactory.create(id=1, tipo_archivo="XML")])

        response = client.post(
            "/api/integrations/import",
            headers=HEADERS,
            files=upload(b"not xml at all", "fletes.xml"),
            data={"configuracionMapeoId": "1"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "FILE_PARSE_ERROR"


# ===================
# RECONCILIATION
# ===================

class TestReconciliationRoutes:
    """Tests for compare, compare/export and sync."""

    def test_compare(self, client):
        content = csv_bytes([CSV_HEADER, ["F-00020", "Transportes ACME", "CDMX", "Monterrey", "1000.02", "900"]])

        response = client.post(
            "/api/integrations/compare",
            headers=HEADERS,
            files=upload(content),
            data={"configuracionMapeoId": "1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["fletesConDiferencias"] == 1
        assert body["diferencias"][0]["campo"] == "precioCliente"

    def test_compare_export_downloads_workbook(self, client):
        result = {
            "totalFletesArchivo": 1,
            "totalFletesLogiProfit": 0,
            "fletesCoincidentes": 0,
            "fletesConDiferencias": 0,
            "fletesSoloEnArchivo": ["F-00030"],
        }

        response = client.post("/api/integrations/compare/export", json=result)

        assert response.status_code == 200
        assert "comparacion_" in response.headers["content-disposition"]
        wb = load_workbook(BytesIO(response.content))
        assert "Solo en Archivo" in wb.sheetnames

    @pytest.mark.parametrize("folios", [
        {"folios": json.dumps(["F-00020"])},
        {"folios": ["F-00020"]},
    ])
    def test_sync_accepts_json_or_repeated_folios(self, client, mock_db, folios):
        content = csv_bytes([CSV_HEADER, ["F-00020", "Transportes ACME", "CDMX", "Monterrey", "1500", ""]])

        response = client.post(
            "/api/integrations/sync",
            headers=HEADERS,
            files=upload(content),
            data={"configuracionMapeoId": "1", **folios},
        )

        assert response.status_code == 200
        assert response.json() == {"actualizados": 1, "errores": []}
        assert mock_db.rows("fletes")[0]["precio_cliente"] == 1500.0
        assert mock_db.rows("fletes")[0]["km_reales"] == 900.0

    def test_sync_rejects_empty_selection(self, client):
        response = client.post(
            "/api/integrations/sync",
            headers=HEADERS,
            files=upload(csv_bytes([CSV_HEADER])),
            data={"configuracionMapeoId": "1", "folios": "[]"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_FOLIOS"


# ===================
# EXPORT AND LOGS
# ===================

class TestExportRoutes:
    """Tests for export and operation logs."""

    def test_export_download(self, client):
        response = client.post("/api/integrations/export", headers=HEADERS, json={
            "configuracionMapeoId": 1,
            "formato": "CSV",
        })

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="fletes_export_' in response.headers["content-disposition"]
        assert response.text.splitlines()[1].startswith("F-00020,")

    def test_logs(self, client):
        client.post("/api/integrations/export", headers=HEADERS, json={
            "configuracionMapeoId": 1,
            "formato": "XML",
        })

        listed = client.get("/api/integrations/logs", headers=HEADERS)
        assert listed.status_code == 200
        assert listed.json()[0]["tipoOperacion"] == "EXPORTACION"

        log_id = listed.json()[0]["id"]
        fetched = client.get(f"/api/integrations/logs/{log_id}", headers=HEADERS)
        assert fetched.status_code == 200
        assert fetched.json()["formato"] == "XML"

        missing = client.get(f"/api/integrations/logs/{log_id}", headers={"X-Empresa-Id": "2"})
        assert missing.status_code == 404


# ===================
# SERVICE ENDPOINTS
# ===================

class TestServiceEndpoints:
    """Tests for /health and /."""

    def test_health_reports_table_counts(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"]["fletes_count"] == 1
        assert body["database"]["mappings_count"] == 1

    def test_health_is_degraded_when_store_fails(self, client, mock_db):
        mock_db.fail_on("fletes", "select")

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_root_lists_integration_endpoints(self, client):
        endpoints = client.get("/").json()["endpoints"]

        assert endpoints["import"] == "/api/integrations/import"
        assert endpoints["export"] == "/api/integrations/export"
