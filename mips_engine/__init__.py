"""
MIPS Scoring Engine Package.

FastAPI service layer for the regulatory performance-scoring engine of a
value-based payment program. Determines provider eligibility, validates quality
measure selections, scores the four performance categories, aggregates them into
a composite score and payment adjustment, and detects compliance gaps.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, dependencies, errors and locks
    - models: Pydantic schemas and enums
    - services: Scoring and analysis services
    - jobs: Batch recomputation and digest jobs
    - sql: Parameterized SQL statements
"""

__version__ = "1.0.0"
