"""
Congregation Kernel - schema-tolerant record persistence

Persists ledger entries, member profiles and categories for the
congregation console against a backing store whose column set is not
fully known to the client:
- Closed, validated payloads per record kind
- Bounded remap-and-retry on unknown-field rejections
- Three-way outcomes (success, partial success, fatal)
"""

__version__ = "0.1.0"
