"""Shared constants for the cantiere analytics backend.

Values used by more than one module and not tied to the internals of a
specific file.
"""

from __future__ import annotations

# HTTP / API
API_PREFIX = "/api"
HEALTH_PATH = "/health"

# Business rules
ECONOMIA_HOURLY_RATE = 30.0
INCIDENCE_MIN_DENOMINATOR = 1.0

MARGIN_LOW_THRESHOLD = 10.0
MARGIN_MEDIUM_THRESHOLD = 20.0

# Site lifecycle
STATUS_PLANNED = "planned"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_SUSPENDED = "suspended"

OPEN_SITE_STATUSES = {STATUS_ACTIVE, STATUS_PLANNED}

# Value display
EMPTY_DISPLAY_VALUE = "–"
THOUSANDS_SEPARATOR = "."
DECIMAL_SEPARATOR = ","
CURRENCY_SUFFIX = " €"
PERCENT_SUFFIX = "%"

# Margin labels
MARGIN_LABEL_FINAL = "A CONSUNTIVO"
MARGIN_LABEL_PROVISIONAL = "PROVVISORIO"

# Materials
DEFAULT_MATERIAL_UNIT = "pz"
UNTITLED_MATERIAL_LABEL = "Materiale senza nome"
MATERIAL_SOURCE_MANUAL = "manual"
MATERIAL_SOURCE_CATALOG = "catalog"
