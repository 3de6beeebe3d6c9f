"""Type aliases shared across warble modules."""

from collections.abc import Mapping
from typing import Any

# Nested mapping loaded from the YAML configuration file
type Config = Mapping[str, Any]

# dataclasses.field() metadata key for a field's binding and encoding tags
TAGS_METADATA = "warble.tags"
