"""
chronokv Storage Contract Definitions

Single source of truth for the constants shared by the validator, the
backends and the HTTP edge. Import from here rather than repeating literals.
"""

import re

# ============================================================================
# Keys
# ============================================================================

KEY_MIN_LENGTH = 1
KEY_MAX_LENGTH = 255
KEY_PATTERN = re.compile(r'^[A-Za-z0-9_.\-]+$')

# ============================================================================
# Timestamps (integer Unix seconds)
# ============================================================================

# Query timestamps may run at most this far ahead of the wall clock
MAX_FUTURE_SECONDS = 86400

TIMESTAMP_PATTERN = re.compile(r'^[0-9]+$')

# ============================================================================
# Persisted layout (durable variants)
# ============================================================================

TABLE_NAME = "kv_store"
INDEX_NAME = "idx_kv_store_key_timestamp"

# Record field names, identical across SQL columns and Mongo documents
FIELD_KEY = "key"
FIELD_VALUE = "value"
FIELD_TIMESTAMP = "timestamp"
FIELD_CREATED_AT = "created_at"

# ============================================================================
# Backend variants
# ============================================================================

BACKEND_SQLITE = "sqlite"
BACKEND_MONGODB = "mongodb"
BACKEND_MEMORY = "memory"

BACKEND_TYPES = (BACKEND_SQLITE, BACKEND_MONGODB, BACKEND_MEMORY)
