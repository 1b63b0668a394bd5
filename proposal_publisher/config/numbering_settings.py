from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from proposal_publisher.exceptions import ConfigurationError
from proposal_publisher.utils.logger import logger

DEFAULT_NUMBERING_PATH = Path(__file__).parent / "numbering.yaml"


class OrdinalCorrection(BaseModel):
    """Offset added to the default ordinal of one term."""
    term: int
    offset: int
    remove_after: Optional[date] = None


class NumberingConfig(BaseModel):
    """Constants for term and ordinal computation."""
    reference_year: int = 2025
    reference_term: int = 6
    ordinal_corrections: List[OrdinalCorrection] = Field(default_factory=list)

    def corrections_by_term(self, today: Optional[date] = None) -> Dict[int, int]:
        """Return the term -> offset table, warning about stale entries."""
        today = today or date.today()
        table: Dict[int, int] = {}
        for correction in self.ordinal_corrections:
            if correction.remove_after and today >= correction.remove_after:
                logger.warning(
                    f"[Numbering] Correction for term {correction.term} is past "
                    f"{correction.remove_after.isoformat()} and can be removed from the numbering config"
                )
            table[correction.term] = correction.offset
        return table


def load_numbering_config(path: Optional[Path] = None) -> NumberingConfig:
    """Load numbering constants from YAML."""
    config_path = Path(path) if path else DEFAULT_NUMBERING_PATH
    try:
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Numbering config not found at {config_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing numbering config: {e}")

    if raw is None:
        raise ConfigurationError("Numbering config is empty")
    return NumberingConfig(**raw)
