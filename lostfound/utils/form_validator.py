from typing import Literal, Optional
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from lostfound.utils.errors import ValidationError

ITEM_STATUSES = ("lost", "found")


class ItemCreateRequest(BaseModel):
    title: str
    status: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    reporter_name: Optional[str] = None


class ValidatedCreateItem(BaseModel):
    status: Literal["lost", "found"]
    title: str = Field(min_length=3, max_length=60)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[Literal[
        "electronics",
        "clothing",
        "bags",
        "keys-wallets",
        "documents",
        "others",
    ]] = None
    location: Optional[str] = Field(default=None, max_length=120)
    image_url: Optional[str] = Field(default=None, max_length=2048)
    reporter_name: Optional[str] = Field(default=None, max_length=80)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_create_item(payload: ItemCreateRequest) -> ValidatedCreateItem:
    try:
        return ValidatedCreateItem(
            status=payload.status,
            title=payload.title.strip(),
            description=_clean(payload.description),
            category=_clean(payload.category),
            location=_clean(payload.location),
            image_url=_clean(payload.image_url),
            reporter_name=_clean(payload.reporter_name),
        )
    except PydanticValidationError as e:
        raise ValidationError(
            [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
        )
