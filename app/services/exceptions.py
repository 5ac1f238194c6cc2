# app/services/exceptions.py

class ServiceError(Exception):
    """Base class for service-layer errors."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ResourceNotFoundError(ServiceError):
    """Product, variant or inventory row does not exist."""
    pass


class InvalidOperationError(ServiceError):
    """Domain rule violated: unknown reference, cross-product variant id, etc."""
    pass


class InsufficientStockError(InvalidOperationError):
    """An adjustment would leave the stock negative."""

    def __init__(self, detail: str = "insufficient stock"):
        super().__init__(detail)


class ConflictError(ServiceError):
    """Uniqueness collision (slug or SKU) detected at persistence time."""
    pass


class ConcurrencyConflictError(ServiceError):
    """Version token mismatch on a guarded write."""

    def __init__(self, entity: str, entity_id: int | None = None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            detail = f"{entity} was modified concurrently; reload and retry."
        else:
            detail = f"{entity} {entity_id} was modified concurrently; reload and retry."
        super().__init__(detail)


class StorageUnavailableError(ServiceError):
    """Store unreachable or timed out. Safe for the caller to retry."""
    pass
