"""Wire and domain models for law records, associations and batch reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from compendium.core.errors import NoActiveSessionError, ValidationError
from compendium.validators import (
    LAW_ID_HINT,
    format_reform_date,
    is_absolute_url,
    is_valid_law_id,
    parse_reform_date,
)


class _WireModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Law metadata (phase one input)
# =============================================================================


class LawMetadata(_WireModel):
    """Validated metadata submitted to ``POST law``."""

    id: str
    name: str
    jurisdiction: str
    source: str
    last_reform_date: datetime

    @model_validator(mode="before")
    @classmethod
    def _title_is_name(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("name") is None and "title" in data:
            data = dict(data)
            data["name"] = data.pop("title")
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _check_id(cls, value: Any) -> str:
        if isinstance(value, str):
            value = value.strip()
        if _blank(value):
            raise ValueError("id is required")
        if not is_valid_law_id(value):
            raise ValueError(f"id {value!r} must match {LAW_ID_HINT}")
        return value

    @field_validator("name", mode="before")
    @classmethod
    def _upper_name(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("name is required")
        return value.strip().upper()

    @field_validator("jurisdiction", mode="before")
    @classmethod
    def _check_jurisdiction(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("jurisdiction is required")
        return value.strip()

    @field_validator("source", mode="before")
    @classmethod
    def _check_source(cls, value: Any) -> str:
        if _blank(value):
            raise ValueError("source is required")
        if not is_absolute_url(value):
            raise ValueError(f"source {value!r} must be an absolute http(s) URL")
        return value.strip()

    @field_validator("last_reform_date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime:
        if _blank(value):
            raise ValueError("lastReformDate is required")
        parsed = parse_reform_date(value)
        if parsed is None:
            raise ValueError(
                f"lastReformDate {value!r} must be a date (YYYY-MM-DD, YYYY/MM/DD or ISO-8601)"
            )
        return parsed

    @field_serializer("last_reform_date")
    def _serialize_date(self, value: datetime) -> str:
        return format_reform_date(value)

    @classmethod
    def parse(cls, fields: "Mapping[str, Any] | LawMetadata") -> "LawMetadata":
        """Validate ``fields`` or raise ValidationError with one message per problem."""
        if isinstance(fields, LawMetadata):
            return fields
        try:
            return cls.model_validate(dict(fields))
        except PydanticValidationError as exc:
            raise ValidationError(_messages(exc), law_id=fields.get("id")) from exc

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _messages(exc: PydanticValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        field_name = str(error["loc"][0]) if error.get("loc") else "record"
        if error.get("type") == "missing":
            messages.append(f"{field_name} is required")
        else:
            messages.append(str(error.get("msg", "")).removeprefix("Value error, "))
    return messages


# =============================================================================
# Records returned by the store
# =============================================================================


def composite_association_id(compendium_id: str, law_id: str) -> str:
    """Deterministic association key: ``<compendiumId>-<lawId>``."""
    return f"{compendium_id}-{law_id}"


class Association(_WireModel):
    id: str
    compendium_id: str
    law_id: str

    @classmethod
    def for_pair(cls, compendium_id: str, law_id: str) -> "Association":
        return cls(
            id=composite_association_id(compendium_id, law_id),
            compendium_id=compendium_id,
            law_id=law_id,
        )


class LawRecord(_WireModel):
    """A law as stored. ``blob_ref`` is absent until the first successful transfer."""

    id: str
    name: Optional[str] = None
    jurisdiction: Optional[str] = None
    source: Optional[str] = None
    last_reform_date: Optional[str] = None
    blob_ref: Optional[str] = None
    associated_compendiums: list[Any] = Field(default_factory=list)

    @field_validator("associated_compendiums", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def has_blob(self) -> bool:
        return bool(self.blob_ref)

    def associations(self) -> list[Association]:
        """Normalize ``associatedCompendiums`` (ids or association objects)."""
        result = []
        for item in self.associated_compendiums:
            if isinstance(item, str):
                result.append(Association.for_pair(item, self.id))
            elif isinstance(item, Mapping):
                compendium_id = item.get("compendiumId") or item.get("compendium_id")
                if compendium_id:
                    result.append(
                        Association(
                            id=item.get("id") or composite_association_id(compendium_id, self.id),
                            compendium_id=compendium_id,
                            law_id=item.get("lawId") or item.get("law_id") or self.id,
                        )
                    )
        return result


class LookupResult(_WireModel):
    law_id: str
    exists: bool
    record: Optional[LawRecord] = None
    relationships: list[Association] = Field(default_factory=list)

    @classmethod
    def missing(cls, law_id: str) -> "LookupResult":
        return cls(law_id=law_id, exists=False)

    @classmethod
    def found(cls, record: LawRecord) -> "LookupResult":
        return cls(
            law_id=record.id,
            exists=True,
            record=record,
            relationships=record.associations(),
        )

    @property
    def has_blob(self) -> bool:
        return bool(self.record and self.record.has_blob)


# =============================================================================
# Upload session
# =============================================================================


@dataclass
class UploadSession:
    """One-time write location returned by ``POST law``. Never reused."""

    law_id: str
    upload_url: str
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _consumed: bool = field(default=False, repr=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def age_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.issued_at).total_seconds()

    def consume(self) -> str:
        if self._consumed:
            raise NoActiveSessionError("Upload session already used", law_id=self.law_id)
        self._consumed = True
        return self.upload_url

    def __repr__(self) -> str:
        return f"UploadSession(law_id={self.law_id!r}, consumed={self._consumed})"


class UpsertOutcome(_WireModel):
    """Result of a full single-record upsert (metadata plus transfer or skip)."""

    law_id: str
    created: bool
    text_stored: bool
    state: str


# =============================================================================
# Batch results
# =============================================================================


class BatchRowResult(_WireModel):
    row_identifier: str = ""
    valid: bool
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, row_identifier: Optional[str]) -> "BatchRowResult":
        return cls(row_identifier=row_identifier or "", valid=True)

    @classmethod
    def failed(cls, row_identifier: Optional[str], errors: list[str]) -> "BatchRowResult":
        return cls(row_identifier=row_identifier or "", valid=False, errors=errors)


class BatchReport(_WireModel):
    success_count: int = 0
    error_count: int = 0
    results: list[BatchRowResult] = Field(default_factory=list)
    file_hash: Optional[str] = None

    def add(self, result: BatchRowResult) -> None:
        self.results.append(result)
        if result.valid:
            self.success_count += 1
        else:
            self.error_count += 1

    @classmethod
    def from_results(
        cls, results: list[BatchRowResult], file_hash: Optional[str] = None
    ) -> "BatchReport":
        report = cls(file_hash=file_hash)
        for result in results:
            report.add(result)
        return report

    @computed_field  # type: ignore[prop-decorator]
    @property
    def message(self) -> str:
        return f"Laws created: {self.success_count}, Errors: {self.error_count}"
