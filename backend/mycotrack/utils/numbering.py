"""Identifier generation for records created by the workflow.

Formats:
  batch item:      <batch_id>-NNN        (sequence continues per batch)
  delivery order:  DO-<epoch millis>-XXXX
  stage log:       LOG-<stage>-<hex>
"""

import time
import uuid

from mycotrack.models.statuses import ProductionStage


def item_code(batch_id: str, sequence: int) -> str:
    return f"{batch_id}-{sequence:03d}"


def delivery_order_code() -> str:
    # suffix keeps orders created in the same millisecond distinct
    return f"DO-{int(time.time() * 1000)}-{uuid.uuid4().hex[:4].upper()}"


def stage_log_code(stage: ProductionStage) -> str:
    return f"LOG-{stage.value[:3]}-{uuid.uuid4().hex[:10].upper()}"
