"""
Payload conversion with per-conversion debug logging.

Encoding is Temporal's default (JSON for data, binary/plain for bytes); the
only addition is one DEBUG record per conversion naming the workflow or
activity it belongs to.
"""

import logging
from typing import Any, List, Optional, Sequence, Type

from temporalio import activity, workflow
from temporalio.api.common.v1 import Payload
from temporalio.converter import DataConverter, DefaultPayloadConverter

logger = logging.getLogger(__name__)


def _attribution() -> str:
    if workflow.in_workflow():
        info = workflow.info()
        return f"workflow {info.workflow_type} {info.workflow_id}/{info.run_id}"
    if activity.in_activity():
        info = activity.info()
        return f"activity {info.activity_type} {info.activity_id} of {info.workflow_id}"
    return "client"


class LoggingPayloadConverter(DefaultPayloadConverter):
    def to_payloads(self, values: Sequence[Any]) -> List[Payload]:
        payloads = super().to_payloads(values)
        logger.debug(f"Encoded {len(payloads)} payload(s) for {_attribution()}")
        return payloads

    def from_payloads(
        self,
        payloads: Sequence[Payload],
        type_hints: Optional[List[Type]] = None,
    ) -> List[Any]:
        values = super().from_payloads(payloads, type_hints)
        logger.debug(f"Decoded {len(values)} payload(s) for {_attribution()}")
        return values


def data_converter() -> DataConverter:
    """DataConverter used by starworker clients and workers."""
    return DataConverter(payload_converter_class=LoggingPayloadConverter)
