"""Storage repository for finished pipeline runs."""

import json
from pathlib import Path
from typing import Any, Optional

from app.core.config import Settings
from app.models.schemas import RunRecord


class RunRepository:
    """Repository for storing and loading run records."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the repository.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.storage_path = Path(settings.storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def save_run(self, record: RunRecord) -> Path:
        """
        Save a run record to storage.

        Args:
            record: Run record to save

        Returns:
            Path of the written JSON file
        """
        file_path = self.storage_path / f"{record.run_id}.json"

        with open(file_path, "w", encoding="utf-8") as f:
            f.write(record.model_dump_json(indent=2))

        self.logger.info(f"Run record saved to: {file_path}")
        return file_path

    def load_run(self, run_id: str) -> Optional[RunRecord]:
        """
        Load a run record from storage.

        Args:
            run_id: Run identifier

        Returns:
            Run record if found, None otherwise
        """
        file_path = self.storage_path / f"{run_id}.json"

        if not file_path.exists():
            self.logger.warning(f"Run not found: {run_id}")
            return None

        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return RunRecord.model_validate(data)

    def list_runs(self) -> list[str]:
        """
        List all stored run IDs, oldest first.

        Returns:
            List of run IDs
        """
        run_ids = sorted(f.stem for f in self.storage_path.glob("*.json"))
        self.logger.debug(f"Found {len(run_ids)} runs")
        return run_ids
