"""
Vault Models — Typed views over the OPVault JSON records.

The on-disk JSON is loosely defined: every category adds its own keys, so
the models name the attributes the session relies on and keep everything
else as pydantic extras.
"""
import base64
import binascii
from types import MappingProxyType
from typing import Any, Optional

from pydantic import BaseModel, Field, StrictInt, field_validator

UNTITLED = "(untitled)"
UNKNOWN_CATEGORY = "Unknown"
LOGIN_CATEGORY = "001"

CATEGORY = MappingProxyType({
    "001": "Login",
    "002": "Credit Card",
    "003": "Secure Note",
    "004": "Identity",
    "005": "Password",
    "099": "Tombstone",
    "100": "Software License",
    "101": "Bank Account",
    "102": "Database",
    "103": "Driver License",
    "104": "Outdoor License",
    "105": "Membership",
    "106": "Passport",
    "107": "Rewards",
    "108": "SSN",
    "109": "Router",
    "110": "Server",
    "111": "Email",
})


def category_name(code: Optional[str]) -> str:
    """Display name for a category code, ``Unknown`` if unrecognized."""
    return CATEGORY.get(code or "", UNKNOWN_CATEGORY)


class VaultProfile(BaseModel):
    """Vault-wide crypto parameters from ``default/profile.js``."""

    uuid: str = ""
    profile_name: str = Field(default="", alias="profileName")
    salt: bytes
    iterations: StrictInt = Field(gt=0)
    master_key: str = Field(alias="masterKey")
    overview_key: str = Field(alias="overviewKey")
    created_at: Optional[int] = Field(default=None, alias="createdAt")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")
    last_updated_by: Optional[str] = Field(default=None, alias="lastUpdatedBy")

    model_config = {"populate_by_name": True, "frozen": True, "extra": "ignore"}

    @field_validator("salt", mode="before")
    @classmethod
    def decode_salt(cls, v: Any) -> Any:
        """Salt is stored base64-encoded."""
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error as err:
                raise ValueError("salt is not valid base64") from err
        return v


class RawItem(BaseModel):
    """One encrypted record as stored in a band file.

    ``o``, ``k`` and ``d`` are the base64 overview, item-key and detail
    blobs; the UUID is the band map key, reattached by the loader.
    """

    uuid: str
    category: str = ""
    overview: Optional[str] = Field(default=None, alias="o")
    key: Optional[str] = Field(default=None, alias="k")
    details: Optional[str] = Field(default=None, alias="d")
    created: Optional[int] = None
    updated: Optional[int] = None
    tx: Optional[int] = None
    hmac: Optional[str] = None
    folder: Optional[str] = None
    fave: Optional[int] = None
    trashed: bool = False

    model_config = {"populate_by_name": True, "frozen": True, "extra": "ignore"}

    @property
    def category_name(self) -> str:
        return category_name(self.category)


class ItemOverview(BaseModel):
    """Decrypted lightweight metadata. Holds no secrets by format convention."""

    title: Optional[str] = None
    url: Optional[str] = None
    ainfo: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    @property
    def username(self) -> str:
        """Username hint (``ainfo``) shown in listings."""
        return self.ainfo or ""

    @property
    def display_title(self) -> str:
        return self.title or UNTITLED


class ItemField(BaseModel):
    """A structured detail field; ``designation`` tags username/password."""

    name: Optional[str] = None
    value: Any = None
    type: Optional[str] = None
    designation: Optional[str] = None

    model_config = {"extra": "allow"}

    def as_dict(self) -> dict:
        return {
            "name": self.name or "",
            "value": "" if self.value is None else str(self.value),
            "designation": self.designation or "",
            "type": self.type or "",
        }


class ItemDetail(BaseModel):
    """Decrypted secret payload. Never cached by the session."""

    password: Optional[str] = None
    notes_plain: Optional[str] = Field(default=None, alias="notesPlain")
    fields: list[ItemField] = Field(default_factory=list)
    sections: list[Any] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "allow"}

    @field_validator("password", mode="before")
    @classmethod
    def stringify_password(cls, v: Any) -> Any:
        """Numeric PINs are stored as JSON numbers."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("fields", mode="before")
    @classmethod
    def drop_invalid_fields(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [f for f in v if isinstance(f, dict)]
        return v

    def credentials(self, username: str = "") -> tuple[str, str]:
        """Resolve the effective (username, password) pair.

        Starts from ``username`` (the overview hint) and the top-level
        ``password``; a non-empty designated field overrides either.
        """
        password = self.password or ""
        for field in self.fields:
            if not field.value:
                continue
            if field.designation == "username":
                username = str(field.value)
            elif field.designation == "password":
                password = str(field.value)
        return username, password
