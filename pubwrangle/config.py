"""
Configuration

Settings come from defaults, then a ``.env`` file / environment variables
(``PUBWRANGLE_*``), then an optional dict of overrides.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

GRAPH_BACKENDS = ('networkx', 'igraph')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes')


class Config:
    """Configuration for loading, network building and chart output."""

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, env_file: Optional[str] = None):
        load_dotenv(env_file)

        # Files
        self.INPUT_FILE = os.getenv('PUBWRANGLE_INPUT_FILE', 'data/publications.csv')
        self.OUTPUT_DIR = os.getenv('PUBWRANGLE_OUTPUT_DIR', 'output')
        self.CSV_DELIMITER = os.getenv('PUBWRANGLE_CSV_DELIMITER', ',')

        # Author identifiers
        self.ID_DELIMITER = os.getenv('PUBWRANGLE_ID_DELIMITER', ';')
        self.MISSING_ID_SENTINELS = [
            s.strip() for s in os.getenv(
                'PUBWRANGLE_MISSING_ID_SENTINELS', '[No author id available]'
            ).split('|') if s.strip()
        ]
        self.INCLUDE_ISOLATED_NODES = _env_bool('PUBWRANGLE_INCLUDE_ISOLATED_NODES', 'false')

        # Network analytics
        self.GRAPH_BACKEND = os.getenv('PUBWRANGLE_GRAPH_BACKEND', 'networkx')
        self.PAGERANK_ALPHA = float(os.getenv('PUBWRANGLE_PAGERANK_ALPHA', '0.85'))
        self.TOP_N = int(os.getenv('PUBWRANGLE_TOP_N', '10'))

        # Charts
        self.FIGURE_DPI = int(os.getenv('PUBWRANGLE_FIGURE_DPI', '150'))
        self.DRAW_NETWORK_MAX_NODES = int(os.getenv('PUBWRANGLE_DRAW_NETWORK_MAX_NODES', '500'))

        # Logging
        self.LOG_LEVEL = os.getenv('PUBWRANGLE_LOG_LEVEL', 'INFO')
        self.LOG_FILE = os.getenv('PUBWRANGLE_LOG_FILE', 'pubwrangle.log')
        self.LOG_DIR = os.getenv('PUBWRANGLE_LOG_DIR', 'logs')

        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        for key, value in config_dict.items():
            if hasattr(self, key.upper()):
                setattr(self, key.upper(), value)
            else:
                raise KeyError(f"Unknown configuration key: {key}")

    def validate(self) -> Dict[str, bool]:
        """Validation result per setting."""
        return {
            'graph_backend': self.GRAPH_BACKEND in GRAPH_BACKENDS,
            'pagerank_alpha': 0.0 < self.PAGERANK_ALPHA < 1.0,
            'top_n': self.TOP_N > 0,
            'figure_dpi': self.FIGURE_DPI > 0,
            'id_delimiter': bool(self.ID_DELIMITER),
            'csv_delimiter': len(self.CSV_DELIMITER) == 1,
            'log_level': self.LOG_LEVEL.upper() in LOG_LEVELS,
        }

    def is_valid(self) -> bool:
        return all(self.validate().values())

    def ensure_directories(self) -> None:
        Path(self.OUTPUT_DIR).mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            attr: getattr(self, attr)
            for attr in dir(self)
            if attr.isupper() and not callable(getattr(self, attr))
        }

    def save_to_file(self, file_path: str) -> None:
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_from_file(cls, file_path: str) -> 'Config':
        with open(file_path, 'r') as f:
            return cls(json.load(f))

    def __str__(self) -> str:
        lines = ["Configuration Settings:"]
        for key, value in sorted(self.to_dict().items()):
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)
