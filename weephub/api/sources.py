"""
Credential Source API Endpoints

List and upsert device-control credentials. Tokens are never returned.
"""

from typing import List

from fastapi import APIRouter

from .deps import APIKeyDep, CredentialStoreDep
from ..core.errors import NotFoundError
from ..core.models import APIResponse, SourceUpsert, SourceView

router = APIRouter()


@router.get("", response_model=List[SourceView])
async def list_sources(store: CredentialStoreDep, api_key: APIKeyDep) -> List[SourceView]:
    """List stored sources with masked tokens"""
    return store.list_entries()


@router.post("", response_model=APIResponse)
async def upsert_source(
    data: SourceUpsert,
    store: CredentialStoreDep,
    api_key: APIKeyDep
) -> APIResponse:
    """Add a source, or update it when the id matches a stored one"""
    source_id = store.upsert(data)
    return APIResponse(message=f"Source {source_id} saved", data={"id": source_id})


@router.put("/{source_id}", response_model=APIResponse)
async def update_source(
    source_id: str,
    data: SourceUpsert,
    store: CredentialStoreDep,
    api_key: APIKeyDep
) -> APIResponse:
    """Update label, token or enabled flag of an existing source"""
    if not store.get_entry(source_id):
        raise NotFoundError(f"Source {source_id} not found")

    store.upsert(data.model_copy(update={"id": source_id}))
    return APIResponse(message=f"Source {source_id} saved", data={"id": source_id})
