from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, cast

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import ORJSONResponse, Response
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.config import AppSettings, load_settings
from app.diagram_wiring import build_generator, resolve_preset
from domain.errors import DiagramError
from domain.models import LandingZonePreset, WorkloadRecord
from domain.services.extract_graph_view import extract_graph_view
from domain.services.generate_diagram import DiagramGenerator

logger = logging.getLogger(__name__)

DRAWIO_MEDIA_TYPE = "application/vnd.jgraph.mxfile"


class DiagramRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    records: list[WorkloadRecord] = Field(
        default_factory=list, validation_alias=AliasChoices("records", "workloads")
    )
    preset: dict[str, Any] | None = None
    show_legend: bool | None = Field(
        default=None, validation_alias=AliasChoices("show_legend", "showLegend")
    )


@dataclass(frozen=True)
class DiagramContext:
    settings: AppSettings
    generators: dict[bool, DiagramGenerator]

    def generator_for(self, show_legend: bool | None) -> DiagramGenerator:
        if show_legend is None:
            show_legend = self.settings.diagram.show_legend
        return self.generators[show_legend]


def create_app(settings: AppSettings) -> FastAPI:
    app = FastAPI(title=settings.diagram.title)
    app.state.context = DiagramContext(
        settings=settings,
        generators={
            True: build_generator(settings, show_legend=True),
            False: build_generator(settings, show_legend=False),
        },
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/diagram/drawio")
    def api_diagram_drawio(
        payload: DiagramRequest,
        context: DiagramContext = Depends(get_context),
    ) -> Response:
        preset = request_preset(context, payload)
        generator = context.generator_for(payload.show_legend)
        try:
            result = generator.generate(payload.records, preset)
        except DiagramError as exc:
            raise diagram_http_error(exc) from exc
        headers = {
            "X-Diagram-Shapes": str(result.document.shape_count),
            "X-Diagram-Connectors": str(result.document.connector_count),
        }
        if result.mismatches:
            headers["X-Classification-Mismatch"] = ",".join(sorted(result.mismatches))
        return Response(
            content=result.document.to_text(),
            media_type=DRAWIO_MEDIA_TYPE,
            headers=headers,
        )

    @app.post("/api/diagram/graph")
    def api_diagram_graph(
        payload: DiagramRequest,
        context: DiagramContext = Depends(get_context),
    ) -> ORJSONResponse:
        preset = request_preset(context, payload)
        try:
            prepared = context.generator_for(None).prepare(payload.records, preset)
        except DiagramError as exc:
            raise diagram_http_error(exc) from exc
        graph_payload = extract_graph_view(prepared.model)
        graph_payload["meta"]["classification_mismatches"] = {
            environment: mismatch.describe()
            for environment, mismatch in prepared.mismatches.items()
        }
        return ORJSONResponse(graph_payload)

    return app


def get_context(request: Request) -> DiagramContext:
    return cast(DiagramContext, request.app.state.context)


def request_preset(context: DiagramContext, payload: DiagramRequest) -> LandingZonePreset:
    try:
        return resolve_preset(context.settings, payload.preset)
    except DiagramError as exc:
        raise diagram_http_error(exc) from exc


def diagram_http_error(exc: DiagramError) -> HTTPException:
    logger.info("Diagram request rejected: %s", exc.message)
    return HTTPException(status_code=422, detail=exc.to_dict())


app = create_app(load_settings())
