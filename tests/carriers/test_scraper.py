"""Tests for the shared HTML scraping strategies and the loaded direct scrapers."""

import json
from urllib.parse import parse_qs
from datetime import datetime, timezone

import httpx
import pytest
from conftest import mock_client

from parcelsync.carriers.base import NoData, Success, TransientError
from parcelsync.services.carrier_loader import CarrierLoader

NEXT_DATA = {
    "props": {
        "pageProps": {
            "tracking": {
                "estado": "En reparto",
                "novedades": [
                    {"fecha": "2026-01-16T10:00:00-05:00", "descripcion": "En reparto", "ciudad": "Cali"},
                    {"fecha": "2026-01-15T08:00:00-05:00", "descripcion": "Recolectado", "ciudad": "Bogotá"},
                ],
            }
        }
    }
}

TCC_PAGE = """
<html><body>
<h3>Rastrea tu envío</h3>
<table class="table">
  <tr><th>Fecha</th><th>Novedad</th><th>Ciudad</th></tr>
  <tr><td>16/01/2026 12:55</td><td>ENTREGADO</td><td>Bogotá</td></tr>
  <tr><td>15/01/2026 08:00</td><td>EN TRANSITO</td><td>Medellín</td></tr>
</table>
</body></html>
"""


def html_handler(body: str, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=body)

    return handler


@pytest.fixture
def loader_for():
    loaders = []

    def build(handler) -> CarrierLoader:
        loader = CarrierLoader(client=mock_client(handler))
        loader.load_all()
        loaders.append(loader)
        return loader

    yield build


class TestLoader:
    def test_loads_every_carrier_by_yaml_id(self, loader_for):
        loader = loader_for(html_handler(""))
        ids = {config.id for config in loader.list_carriers()}
        assert {
            "coordinadora", "tcc-co", "servientrega", "envia-co", "interrapidisimo-scraper",
            "deprisa", "estafeta", "redpack",
        } <= ids
        assert loader.has_carrier("tcc-co")
        assert not loader.has_carrier("fedex")

    def test_picks_the_class_defined_in_tracker(self, loader_for):
        loader = loader_for(html_handler(""))
        assert type(loader.get_carrier("coordinadora")).__name__ == "CoordinadoraCarrier"


class TestHtmlScraper:
    async def test_embedded_json_is_preferred(self, loader_for):
        page = (
            '<html><body><h3>Estado desconocido</h3>'
            f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(NEXT_DATA)}</script>'
            "</body></html>"
        )
        carrier = loader_for(html_handler(page)).get_carrier("coordinadora")

        outcome = await carrier.fetch("5123456789")

        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "En reparto"
        assert [e.location for e in outcome.snapshot.events] == ["Cali", "Bogotá"]
        assert outcome.snapshot.events[0].timestamp == datetime(2026, 1, 16, 15, 0, tzinfo=timezone.utc)

    async def test_table_rows_and_boilerplate_rejection(self, loader_for):
        carrier = loader_for(html_handler(TCC_PAGE)).get_carrier("tcc-co")

        outcome = await carrier.fetch("7123456789")

        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "ENTREGADO"
        assert [e.description for e in outcome.snapshot.events] == ["ENTREGADO", "EN TRANSITO"]
        assert outcome.snapshot.events[0].timestamp == datetime(2026, 1, 16, 12, 55, tzinfo=timezone.utc)
        assert outcome.snapshot.events[1].location == "Medellín"

    def test_status_plausibility(self, loader_for):
        carrier = loader_for(html_handler("")).get_carrier("coordinadora")
        assert carrier.is_plausible_status("En tránsito")
        assert not carrier.is_plausible_status("OK")
        assert not carrier.is_plausible_status("x" * 81)
        assert not carrier.is_plausible_status("Rastrea tu envío aquí")

    async def test_empty_page_is_no_data_with_diagnostic(self, loader_for):
        carrier = loader_for(html_handler("<html><body><p>Hola mundo</p></body></html>")).get_carrier(
            "coordinadora"
        )

        outcome = await carrier.fetch("5123456789")

        assert isinstance(outcome, NoData)
        assert "embedded JSON (2 paths)" in outcome.diagnostic
        assert "Hola mundo" in outcome.diagnostic

    async def test_server_error_is_transient(self, loader_for):
        carrier = loader_for(html_handler("boom", status_code=500)).get_carrier("tcc-co")

        outcome = await carrier.fetch("7123456789")

        assert isinstance(outcome, TransientError)


class TestJsonCarriers:
    async def test_servientrega(self, loader_for):
        def handler(request: httpx.Request) -> httpx.Response:
            assert "/envio/912345678/" in request.url.path
            return httpx.Response(
                200,
                json={
                    "estadoActual": "En tránsito",
                    "movimientos": [{"fecha": "16/01/2026 09:00", "movimiento": "Salió de centro logístico"}],
                },
            )

        outcome = await loader_for(handler).get_carrier("servientrega").fetch(" 912345678 ")

        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "En tránsito"
        assert outcome.snapshot.events[0].description == "Salió de centro logístico"

    async def test_servientrega_non_object_body_is_transient(self, loader_for):
        outcome = await loader_for(lambda r: httpx.Response(200, json=[])).get_carrier("servientrega").fetch("1")
        assert isinstance(outcome, TransientError)

    async def test_envia_empty_array_is_no_data(self, loader_for):
        outcome = await loader_for(lambda r: httpx.Response(200, json=[])).get_carrier("envia-co").fetch("1")
        assert isinstance(outcome, NoData)

    async def test_envia_posts_the_code(self, loader_for):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"trackingNumbers": ["1234567890123"]}
            return httpx.Response(200, json=[{"status": "Entregado", "events": []}])

        outcome = await loader_for(handler).get_carrier("envia-co").fetch("1234567890123")

        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "Entregado"

    async def test_interrapidisimo_token_then_query(self, loader_for):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            if request.url.path.endswith("GenerarTokenTemporal"):
                return httpx.Response(200, text='"tok-123"')
            assert request.headers["Authorization"] == "Bearer tok-123"
            return httpx.Response(
                200,
                json={
                    "Success": True,
                    "Data": {
                        "Estado": "En camino",
                        "Novedades": [
                            {"Novedad": "Recibido en centro", "Fecha": "15/01/2026", "Hora": "10:30",
                             "Ciudad": "BOGOTA\\CUND\\COL"}
                        ],
                    },
                },
            )

        outcome = await loader_for(handler).get_carrier("interrapidisimo-scraper").fetch("240012345678")

        assert len(seen) == 2
        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "En camino"
        event = outcome.snapshot.events[0]
        assert event.location == "BOGOTA CUND COL"
        assert event.timestamp == datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)

    async def test_interrapidisimo_api_error_is_no_data(self, loader_for):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("GenerarTokenTemporal"):
                return httpx.Response(200, json={"token": "abc"})
            return httpx.Response(200, json={"Success": False, "Message": "Guía no encontrada"})

        outcome = await loader_for(handler).get_carrier("interrapidisimo-scraper").fetch("240012345678")

        assert isinstance(outcome, NoData)
        assert "Guía no encontrada" in outcome.diagnostic


class TestDeprisa:
    async def test_embedded_json_under_rastreo(self, loader_for):
        payload = {
            "props": {
                "pageProps": {
                    "rastreo": {
                        "estado_actual": "En tránsito",
                        "eventos_rastreo": [
                            {"fecha_hora": "2026-01-15T08:00:00-05:00", "novedad": "Recibido en bodega", "city": "Bogotá"}
                        ],
                    }
                }
            }
        }
        page = f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(payload)}</script>'

        outcome = await loader_for(html_handler(page)).get_carrier("deprisa").fetch("20123456")

        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "En tránsito"
        event = outcome.snapshot.events[0]
        assert event.location == "Bogotá"
        assert event.timestamp == datetime(2026, 1, 15, 13, 0, tzinfo=timezone.utc)

    async def test_html_status_and_table(self, loader_for):
        page = """
        <div class="estado-envio">Entregado</div>
        <table class="tabla-rastreo">
          <tr><th>Fecha</th><th>Novedad</th><th>Ciudad</th></tr>
          <tr><td>16/01/2026 12:55</td><td>Entregado</td><td>Cali</td></tr>
        </table>
        """
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["guia"] == "20123456"
            return httpx.Response(200, text=page)

        outcome = await loader_for(handler).get_carrier("deprisa").fetch("20123456")

        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "Entregado"
        assert [e.location for e in outcome.snapshot.events] == ["Cali"]


ESTAFETA_RESULT = """
<div class="portlet-body">
  <div class="estado-actual">Entregado</div>
  <table class="tracking-table">
    <tr><th>Fecha</th><th>Evento</th><th>Lugar</th></tr>
    <tr><td>16/01/2026 12:55</td><td>Entregado</td><td>Monterrey</td></tr>
    <tr><td>15/01/2026 08:00</td><td>En ruta</td><td>CDMX</td></tr>
  </table>
</div>
"""


class TestEstafeta:
    async def test_posts_the_guide_to_the_portlet_form(self, loader_for):
        posted = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(
                    200,
                    text='<form method="post" action="/herramientas/rastreo?p_p_id=rastreo_WAR_port'
                    '&amp;p_p_lifecycle=1&amp;p_auth=Xy9"><input name="q"></form>',
                )
            posted.append((request.url.params["p_auth"], parse_qs(request.content.decode())))
            return httpx.Response(200, text=ESTAFETA_RESULT)

        outcome = await loader_for(handler).get_carrier("estafeta").fetch("8055241528464720099314")

        assert posted == [
            (
                "Xy9",
                {
                    "rastreo_WAR_port_wayBillType": ["1"],
                    "rastreo_WAR_port_wayBillNumbers": ["8055241528464720099314"],
                },
            )
        ]
        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "Entregado"
        assert [e.location for e in outcome.snapshot.events] == ["Monterrey", "CDMX"]

    def test_form_from_a_portlet_id_in_scripts(self, loader_for):
        carrier = loader_for(html_handler("")).get_carrier("estafeta")
        html = "<script>Liferay.Portlet.ready('p_p_id=rastreo_WAR_port', 'p_auth=abc-1');</script>"

        action, namespace = carrier.find_form(html, "https://www.estafeta.com/herramientas/rastreo")

        assert namespace == "rastreo_WAR_port"
        assert action.startswith("https://www.estafeta.com/herramientas/rastreo?p_p_id=rastreo_WAR_port&")
        assert action.endswith("&p_auth=abc-1")

    async def test_page_without_portlet_is_no_data(self, loader_for):
        outcome = await loader_for(html_handler("<html>Mantenimiento</html>")).get_carrier("estafeta").fetch("1")

        assert isinstance(outcome, NoData)
        assert "portlet" in outcome.diagnostic


class TestRedpack:
    async def test_nonce_then_ajax(self, loader_for):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                assert request.url.params["guia"] == "123456789"
                return httpx.Response(
                    200,
                    text='<script>var internacionalRedpackVars = {"nonce": "n0nce", "action": "rastreo_guia"};</script>',
                )
            assert request.url.path == "/wp-admin/admin-ajax.php"
            form = parse_qs(request.content.decode())
            assert form["action"] == ["rastreo_guia"]
            assert form["guia"] == ["123456789"]
            assert form["nonce"] == form["_ajax_nonce"] == ["n0nce"]
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {
                        "status": "En tránsito",
                        "history": [{"date": "15/01/2026 10:30", "description": "En tránsito", "location": "CDMX"}],
                    },
                },
            )

        outcome = await loader_for(handler).get_carrier("redpack").fetch("123456789")

        assert isinstance(outcome, Success)
        assert outcome.snapshot.status == "En tránsito"
        assert [e.location for e in outcome.snapshot.events] == ["CDMX"]

    async def test_default_action_and_events_list(self, loader_for):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, text="<html></html>")
            form = parse_qs(request.content.decode())
            assert form["action"] == ["redpack_rastreo"]
            assert "nonce" not in form
            return httpx.Response(200, json={"success": True, "data": [{"fecha": "15/01/2026", "event": "Entregado"}]})

        outcome = await loader_for(handler).get_carrier("redpack").fetch("123456789")

        assert isinstance(outcome, Success)
        assert len(outcome.snapshot.events) == 1

    async def test_empty_answer_is_no_data(self, loader_for):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, text="<html></html>")
            return httpx.Response(200, json={"success": False})

        outcome = await loader_for(handler).get_carrier("redpack").fetch("123456789")

        assert isinstance(outcome, NoData)
