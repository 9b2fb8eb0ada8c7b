"""Form endpoints — list the bundled forms and return their configuration.

Read-only: forms are loaded once at startup from the forms directory.
"""

from typing import Any

from fastapi import APIRouter, Depends

from intake_engine.formstore import FormStore

from intake_server.dependencies import get_store

router = APIRouter(prefix="/forms", tags=["forms"])


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("")
def list_forms(
    store: FormStore = Depends(get_store),
) -> list[dict]:
    """Return a summary of every loaded form."""
    return [
        {
            "slug": slug,
            "product": form.meta.product,
            "condition": form.condition,
            "form_name": form.meta.form_name,
            "version": form.meta.version,
            "screen_count": len(form.screens),
        }
        for slug, form in store.forms.items()
    ]


@router.get("/{slug}")
def get_form(
    slug: str,
    store: FormStore = Depends(get_store),
) -> dict[str, Any]:
    """Return the full configuration of one form.

    Raises 404 if no form has that slug.
    """
    form = store.get(slug)
    return form.model_dump(mode="json", by_alias=True, exclude_none=True)
