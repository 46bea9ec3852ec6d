"""
neuro_arena/services/persistence.py

File persistence for populations and champions.

Each experiment owns two save files in the application data directory:
- <experiment>.pop.json    the whole genome list
- <experiment>.champ.json  the single best genome

Saves overwrite the whole file (written to a temp file, then moved into
place). Saves only happen while evolution is paused, so there is no
writer locking.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Sequence

from neuro_arena.errors import (
    PersistenceWriteFailure,
    SaveFileCorrupt,
    SaveFileNotFound,
)
from neuro_arena.evolution.genome import Genome, genome_from_dict

logger = logging.getLogger(__name__)

FILE_FORMAT = "neuro_arena.genomes"
FILE_VERSION = 1


class ExperimentFileType(Enum):
    """Kinds of save file kept per experiment."""
    POPULATION = "pop"
    CHAMPION = "champ"


def default_data_dir() -> Path:
    return Path.home() / ".neuro_arena"


@dataclass
class PersistenceConfig:
    """Configuration for save-file persistence."""

    data_dir: Path = field(default_factory=default_data_dir)
    extension: str = "json"
    indent: int = 2

    def __post_init__(self):
        self.data_dir = Path(self.data_dir).expanduser()

    @classmethod
    def from_env(cls) -> PersistenceConfig:
        """Create config from environment variables."""
        data_dir = os.environ.get("NEURO_ARENA_DATA_DIR")
        return cls(data_dir=Path(data_dir) if data_dir else default_data_dir())


class PopulationStore:
    """
    Loads and saves genome lists keyed by experiment id and file kind.

    Read failures are raised (SaveFileNotFound / SaveFileCorrupt); what
    to do about them is the caller's policy. Write failures are logged
    and reported as False.
    """

    def __init__(self, config: PersistenceConfig | None = None):
        self.config = config or PersistenceConfig()

    def path_for(self, experiment_id: str, kind: ExperimentFileType) -> Path:
        """Absolute path of a save file."""
        return self.config.data_dir / f"{experiment_id}.{kind.value}.{self.config.extension}"

    # ==================== Save ====================

    def save(
        self,
        experiment_id: str,
        kind: ExperimentFileType,
        genomes: Sequence[Genome],
    ) -> bool:
        """
        Overwrite the save file with `genomes`.

        Returns True on success, False if the file could not be written.
        """
        path = self.path_for(experiment_id, kind)
        document = {
            "format": FILE_FORMAT,
            "version": FILE_VERSION,
            "experiment": experiment_id,
            "kind": kind.value,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "genomes": [g.to_dict() for g in genomes],
        }

        try:
            self._write_atomic(path, json.dumps(document, indent=self.config.indent))
        except (OSError, TypeError, ValueError) as e:
            failure = PersistenceWriteFailure(path, e)
            logger.error(
                f"Error saving the {kind.name.lower()} of experiment "
                f"'{experiment_id}': {failure}"
            )
            return False

        logger.info(
            f"Saved {len(genomes)} genomes ({kind.name.lower()}) of experiment "
            f"'{experiment_id}' to {path}"
        )
        return True

    def _write_atomic(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    # ==================== Load ====================

    def load(self, experiment_id: str, kind: ExperimentFileType) -> List[Genome]:
        """
        Read the genome list saved for this experiment and kind.

        Raises:
            SaveFileNotFound: no save file exists
            SaveFileCorrupt: the file exists but cannot be parsed
        """
        path = self.path_for(experiment_id, kind)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise SaveFileNotFound(path) from e
        except OSError as e:
            raise SaveFileCorrupt(path, f"cannot read {path}: {e}") from e

        try:
            document = json.loads(text)
            genomes = self._parse(document)
        except (ValueError, KeyError, TypeError) as e:
            raise SaveFileCorrupt(path, f"corrupt save file {path}: {e}") from e

        logger.info(
            f"Loaded {len(genomes)} genomes ({kind.name.lower()}) of experiment "
            f"'{experiment_id}' from {path}"
        )
        return genomes

    def _parse(self, document: Dict[str, Any]) -> List[Genome]:
        if not isinstance(document, dict) or document.get("format") != FILE_FORMAT:
            raise ValueError("not a genome save file")
        if document.get("version") != FILE_VERSION:
            raise ValueError(f"unsupported version {document.get('version')}")
        return [genome_from_dict(g) for g in document["genomes"]]

    # ==================== Housekeeping ====================

    def exists(self, experiment_id: str, kind: ExperimentFileType) -> bool:
        return self.path_for(experiment_id, kind).is_file()

    def delete(self, experiment_id: str, kind: ExperimentFileType) -> bool:
        """Delete one save file. Returns True if a file was removed."""
        path = self.path_for(experiment_id, kind)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Deleted {kind.name.lower()} save file {path}")
        return True

    def delete_all(self, experiment_id: str) -> int:
        """Delete every save file of an experiment. Returns how many were removed."""
        return sum(self.delete(experiment_id, kind) for kind in ExperimentFileType)
