"""Repository contracts, SQL implementations and the specification compiler."""

from rentrepairs.infrastructure.repositories.base import (
    PropertyRepository,
    Repository,
    RequestRepository,
    WorkerRepository,
)
from rentrepairs.infrastructure.repositories.compiler import (
    CompiledQuery,
    SpecificationCompiler,
    UnsupportedSpecificationError,
)
from rentrepairs.infrastructure.repositories.sql import (
    SqlPropertyRepository,
    SqlRepository,
    SqlRequestRepository,
    SqlWorkerRepository,
)

__all__ = [
    "CompiledQuery",
    "PropertyRepository",
    "Repository",
    "RequestRepository",
    "SpecificationCompiler",
    "SqlPropertyRepository",
    "SqlRepository",
    "SqlRequestRepository",
    "SqlWorkerRepository",
    "UnsupportedSpecificationError",
    "WorkerRepository",
]
