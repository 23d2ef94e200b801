"""
Document Store Migration Engine

Migrates collections from a schema-less document store (MongoDB) into
relational tables (PostgreSQL) following a precomputed migration plan.

Supports:
- One streaming producer and a pool of consumers per collection
- Bounded queues with backpressure between producers and consumers
- Plan-driven table creation and value transcoding
- Bounded retry with linear backoff for failed batches
- Atomic progress tracking and per-collection metrics
"""

__version__ = "0.1.0"
