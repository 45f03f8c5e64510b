"""A driver that runs nothing and reports what it would have sent."""

from __future__ import annotations

import json
import logging
import sys
from typing import TextIO

from bundlehub.driver.base import Driver, Operation

logger = logging.getLogger(__name__)


class DebugDriver(Driver):
    def __init__(self, out: TextIO | None = None):
        self.out = out or sys.stdout

    def handles(self, image_type: str) -> bool:
        return True

    def run(self, operation: Operation) -> None:
        logger.debug("debug driver received %s for %s", operation.action, operation.installation)
        json.dump(operation.to_dict(), self.out, indent=2, sort_keys=True)
        self.out.write("\n")
