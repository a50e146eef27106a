"""
Configuration Validator Module

Validates rollout configuration against the schema and performs semantic validation.
"""

import string
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple
import yaml
from jsonschema import validate, ValidationError

from .naming import NAMING_PLACEHOLDERS


SCHEMA_FILE = Path(__file__).parent / 'schemas' / 'rollout-config.schema.yaml'


class ConfigValidator:
    """Validate configuration files against schema and business rules."""

    def __init__(self, schema_path: Optional[str] = None):
        """
        Initialize the ConfigValidator.

        Args:
            schema_path: Path to the schema file (YAML encoded JSON schema)
        """
        self.schema_path = Path(schema_path) if schema_path else SCHEMA_FILE
        self.schema = self._load_schema()
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def _load_schema(self) -> Dict[str, Any]:
        """Load the JSON schema from file."""
        if not self.schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {self.schema_path}")

        with open(self.schema_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)

    def validate(self, config: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
        """
        Validate configuration against schema and business rules.

        Args:
            config: Configuration dictionary to validate

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors = []
        self.warnings = []

        try:
            validate(instance=config, schema=self.schema)
        except ValidationError as e:
            location = '.'.join(str(p) for p in e.absolute_path)
            prefix = f"{location}: " if location else ''
            self.errors.append(f"Schema validation error: {prefix}{e.message}")
            return False, self.errors, self.warnings

        self._validate_naming(config)
        self._validate_timing(config)
        self._validate_restart(config)
        self._validate_desktop(config)
        self._validate_repository(config)
        self._validate_identity(config)

        is_valid = len(self.errors) == 0
        return is_valid, self.errors, self.warnings

    def _validate_naming(self, config: Dict[str, Any]):
        """Validate naming templates and the segment convention."""
        naming = config.get('naming', {})

        index = naming.get('segment_index', 3)
        minimum = naming.get('min_segments', 4)
        if index >= minimum:
            self.errors.append(
                f"naming.segment_index ({index}) must be lower than "
                f"naming.min_segments ({minimum})"
            )

        for key, template in naming.items():
            if not isinstance(template, str):
                continue
            allowed = NAMING_PLACEHOLDERS - {'host_pool'} if key == 'host_pool' else NAMING_PLACEHOLDERS
            for field_name in self._placeholders(template, key):
                if field_name not in allowed:
                    self.errors.append(
                        f"naming.{key} references unknown placeholder '{{{field_name}}}'"
                    )

    def _placeholders(self, template: str, key: str) -> List[str]:
        try:
            return [
                name for _, name, _, _ in string.Formatter().parse(template)
                if name is not None
            ]
        except ValueError as e:
            self.errors.append(f"naming.{key} is not a valid template: {e}")
            return []

    def _validate_timing(self, config: Dict[str, Any]):
        """Validate delays."""
        timing = config.get('timing', {})

        for key in ['propagation_delay_seconds', 'warmup_delay_seconds']:
            value = timing.get(key, 0)
            if value < 0:
                self.errors.append(f"timing.{key} must not be negative")

        if timing.get('propagation_delay_seconds') == 0:
            self.warnings.append(
                "timing.propagation_delay_seconds is 0; restarts may target "
                "host pool objects that have not propagated yet"
            )

    def _validate_restart(self, config: Dict[str, Any]):
        """Validate restart orchestration settings."""
        restart = config.get('restart', {})

        if restart.get('max_parallel', 1) < 1:
            self.errors.append("restart.max_parallel must be at least 1")

        polling = restart.get('readiness_polling', {})
        warmup = config.get('timing', {}).get('warmup_delay_seconds', 0)
        if polling.get('enabled') and polling.get('interval_seconds', 0) > warmup:
            self.warnings.append(
                "restart.readiness_polling.interval_seconds exceeds the warm-up "
                "delay; hosts will be polled at most once"
            )

    def _validate_desktop(self, config: Dict[str, Any]):
        """Validate desktop rename settings."""
        desktop = config.get('desktop', {})

        if desktop.get('retry_attempts', 1) < 1:
            self.errors.append("desktop.retry_attempts must be at least 1")
        if desktop.get('retry_delay_seconds', 0) < 0:
            self.errors.append("desktop.retry_delay_seconds must not be negative")

    def _validate_repository(self, config: Dict[str, Any]):
        """Validate that the repository root is reachable."""
        root = config.get('repository', {}).get('root')
        if root and not Path(root).exists():
            self.warnings.append(
                f"Repository root {root} is not reachable from this machine"
            )

    def _validate_identity(self, config: Dict[str, Any]):
        """Validate service principal inputs."""
        azure = config.get('azure', {})
        provided = [key for key in ('tenant_id', 'client_id', 'client_secret') if azure.get(key)]

        if provided and len(provided) < 3:
            self.warnings.append(
                "Service principal credentials are incomplete; "
                "falling back to the default Azure credential chain"
            )
