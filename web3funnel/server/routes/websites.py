from datetime import datetime
from typing import Optional, Tuple

from fastapi import APIRouter, Depends

from ..aggregation import website_overview
from ..auth import get_store
from ..models import Website, WebsiteCreate, WebsiteStatus, WebsiteUpdate
from ..rate_limit import limit_anonymous_api, limit_api
from ..responses import failure_message, success
from ..storage import MemoryStore, generate_api_key
from .events import date_range

DETAIL_FIELDS = {
    "website_id", "name", "domain", "description", "owner", "settings",
    "status", "stats", "created_at", "updated_at",
}
UPDATED_FIELDS = {
    "website_id", "name", "domain", "description", "owner", "settings",
    "status", "updated_at",
}

router = APIRouter(prefix="/websites", tags=["websites"])


@router.post("/register", status_code=201, dependencies=[Depends(limit_anonymous_api)])
def register_website(
    registration: WebsiteCreate,
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Failed to register website"):
        fields = registration.model_dump(exclude_none=True, exclude={"owner", "settings"})
        if registration.owner is not None:
            fields["owner"] = registration.owner
        if registration.settings is not None:
            fields["settings"] = registration.settings

        website = store.add_website(Website(api_key=generate_api_key(), **fields))

    return success(
        website.to_payload(include={"website_id", "name", "domain", "api_key", "status"}),
        message="Website registered successfully",
    )


@router.get("/details")
def get_website(website: Website = Depends(limit_api)):
    return success(website.to_payload(include=DETAIL_FIELDS))


@router.put("/update")
def update_website(
    update: WebsiteUpdate,
    website: Website = Depends(limit_api),
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Failed to update website"):
        changes = {
            name: getattr(update, name)
            for name in update.model_fields_set
            if getattr(update, name) is not None or name == "description"
        }
        updated = store.update_website(website.website_id, changes)

    return success(
        updated.to_payload(include=UPDATED_FIELDS),
        message="Website updated successfully",
    )


@router.post("/regenerate-api-key")
def regenerate_api_key(
    website: Website = Depends(limit_api),
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Failed to regenerate API key"):
        updated = store.regenerate_api_key(website.website_id)

    return success(
        {"websiteId": updated.website_id, "newApiKey": updated.api_key},
        message="API key regenerated successfully",
    )


@router.get("/analytics")
def get_website_analytics(
    dates: Tuple[Optional[datetime], Optional[datetime]] = Depends(date_range),
    website: Website = Depends(limit_api),
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Failed to retrieve website analytics"):
        events = store.events_for(website.website_id, *dates)
        return success(website_overview(events, store.events_for(website.website_id)))


@router.delete("/delete")
def delete_website(
    website: Website = Depends(limit_api),
    store: MemoryStore = Depends(get_store),
):
    with failure_message("Failed to delete website"):
        store.update_website(website.website_id, {"status": WebsiteStatus.SUSPENDED})

    return success(message="Website deleted successfully")
