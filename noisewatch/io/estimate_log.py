"""JSON-lines output of published noise estimates."""

from __future__ import annotations

import json
import os
import sys
import time
from pathlib import Path
from typing import IO, Any, Optional

from noisewatch.worker.types import NoiseEstimate


class EstimateLogger:
    """Write one JSON object per estimate to a stream and optionally a file."""

    def __init__(self, stream: Optional[IO[str]] = None, jsonl_path: Optional[str] = None):
        self.stream = stream if stream is not None else sys.stdout
        self.jsonl_path: Optional[Path] = None
        if jsonl_path:
            path = Path(jsonl_path).expanduser()
            if not path.is_absolute():
                path = (Path.cwd() / path).absolute()
            path.parent.mkdir(parents=True, exist_ok=True)
            self.jsonl_path = path
        self.run_id = f"run-{int(time.time() * 1000)}-pid{os.getpid()}"
        self.count = 0

    def write(self, estimate: NoiseEstimate, **fields: Any) -> None:
        record = {"run_id": self.run_id, **estimate.as_dict(), **fields}
        line = json.dumps(record)
        self.stream.write(line + "\n")
        self.stream.flush()
        if self.jsonl_path is not None:
            with self.jsonl_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        self.count += 1
