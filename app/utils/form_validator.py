import re
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from app.utils.errors import ValidationError

REQUIRED_ITEM_FIELDS = ("title", "description", "category", "location", "date")

CATEGORIES = ("wallet", "phone", "documents", "bags", "jewelry", "keys", "other")

PHONE_PATTERN = re.compile(r"^\+?[0-9][0-9 \-]*$")


class ValidatedCreateItem(BaseModel):
    item_type: Literal["lost", "found"]
    title: str = Field(min_length=2, max_length=60)
    description: str = Field(min_length=10, max_length=500)
    category: Literal["wallet", "phone", "documents", "bags", "jewelry", "keys", "other"]
    date: datetime
    location: str = Field(min_length=2, max_length=80)
    reward: Optional[int] = Field(default=None, ge=0)
    commission: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_incentive(self):
        # reward belongs to lost items, commission to found items
        if self.item_type == "lost" and self.commission is not None:
            raise ValueError("Lost items carry a reward, not a commission")
        if self.item_type == "found" and self.reward is not None:
            raise ValueError("Found items carry a commission, not a reward")
        return self


def format_errors(e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_date(value) -> datetime:
    if isinstance(value, datetime):
        return value

    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Date not parseable")


def _clean(value):
    return value.strip() if isinstance(value, str) else value


def validate_create_item_form(
    item_type: str,
    title: Optional[str],
    description: Optional[str],
    category: Optional[str],
    date,
    location: Optional[str],
    reward: Optional[int] = None,
    commission: Optional[int] = None,
) -> ValidatedCreateItem:
    fields = {
        "title": _clean(title),
        "description": _clean(description),
        "category": _clean(category),
        "location": _clean(location),
        "date": _clean(date),
    }

    missing = [name for name in REQUIRED_ITEM_FIELDS if not fields[name]]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

    try:
        return ValidatedCreateItem(
            item_type=item_type,
            title=fields["title"],
            description=fields["description"],
            category=fields["category"].lower(),
            date=parse_date(fields["date"]),
            location=fields["location"],
            reward=reward,
            commission=commission,
        )
    except PydanticValidationError as e:
        raise ValidationError(format_errors(e))


def validate_phone(phone: Optional[str]) -> str:
    phone = (phone or "").strip()
    digits = re.sub(r"\D", "", phone)

    if not PHONE_PATTERN.match(phone) or not 9 <= len(digits) <= 15:
        raise ValidationError("Malformed phone number")

    return phone


def validate_display_name(name: Optional[str]) -> str:
    name = " ".join((name or "").split())

    if not 1 <= len(name) <= 100:
        raise ValidationError("Name must be between 1 and 100 characters")

    return name
