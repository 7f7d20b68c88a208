"""FastAPI dependency utilities."""

from fastapi import Header, HTTPException, status

TENANT_HEADER = "X-Tenant-ID"


def get_tenant_id(x_tenant_id: str | None = Header(default=None, alias=TENANT_HEADER)) -> str:
    """Return the tenant scope of the request taken from ``X-Tenant-ID``."""

    tenant_id = (x_tenant_id or "").strip()
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing {TENANT_HEADER} header",
        )
    return tenant_id


__all__ = ["TENANT_HEADER", "get_tenant_id"]
