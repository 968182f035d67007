"""Step configuration, pipeline configuration and run context models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"sf-{ts}-{uuid.uuid4().hex[:3]}"


class RunContext(BaseModel):
    """Ambient, read-only configuration shared by every step of a run."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    run_id: str = Field(default_factory=_new_run_id)


class ImageStreamTagReference(BaseModel):
    """Target of a tagging step: ``namespace/name:tag``.

    ``export_as`` (``as`` or ``exportAs`` in configuration files) names the
    parameter the step exports; empty means nothing is exported.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    namespace: str = ""
    name: str
    tag: str
    export_as: str = Field(
        default="",
        validation_alias=AliasChoices("as", "exportAs", "export_as"),
    )


class OutputImageTagStepConfiguration(BaseModel):
    """Tag the pipeline image ``from_`` into the ``to`` image stream tag."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str = Field(alias="from")
    to: ImageStreamTagReference


class InputImageTagStepConfiguration(BaseModel):
    """Tag an external base image into ``pipeline:<to>``."""

    model_config = ConfigDict(frozen=True)

    base_image: ImageStreamTagReference
    to: str


class ReleaseTagConfiguration(BaseModel):
    """Image stream holding the release payload to import into ``stable``."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str


class PipelineConfig(BaseModel):
    """A pipeline definition, loaded from TOML or JSON.

    Example (TOML)::

        [[input_images]]
        to = "builder"
        base_image = { namespace = "ci", name = "golang", tag = "1.22" }

        [[output_images]]
        from = "builder"
        to = { name = "stable", tag = "latest", as = "builder-image" }
    """

    model_config = ConfigDict(frozen=True)

    input_images: list[InputImageTagStepConfiguration] = []
    output_images: list[OutputImageTagStepConfiguration] = []
    release: ReleaseTagConfiguration | None = None
    parameters_file: Path | None = None
