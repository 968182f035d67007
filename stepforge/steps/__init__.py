"""Pipeline step kinds.

Each step implements the ``Step`` contract from ``stepforge.steps.base``:
dependency metadata, lazy parameter export, completion check and
create-or-update reconciliation against the image store.
"""

from stepforge.steps.base import Operation, Step, StepError
from stepforge.steps.input_image_tag import InputImageTagStep
from stepforge.steps.output_image_tag import OutputImageTagStep
from stepforge.steps.release_images import ReleaseImagesTagStep
from stepforge.steps.write_params import WriteParametersStep

__all__ = [
    "Operation",
    "Step",
    "StepError",
    "InputImageTagStep",
    "OutputImageTagStep",
    "ReleaseImagesTagStep",
    "WriteParametersStep",
]
