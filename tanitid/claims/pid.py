"""EU PID (eu.europa.ec.eudi.pid.1) claims, demo persona and NIC mapping."""
from datetime import date
from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from . import find_missing_fields

PID_MANDATORY_FIELDS = [
    "family_name",
    "given_name",
    "birth_date",
    "age_over_18",
    "issuance_date",
    "expiry_date",
    "issuing_authority",
    "issuing_country",
]

PID_FIELD_LABELS: Dict[str, str] = {
    "family_name": "Family Name",
    "given_name": "Given Name",
    "birth_date": "Date of Birth",
    "age_over_18": "Age Over 18",
    "issuance_date": "Issuance Date",
    "expiry_date": "Expiry Date",
    "issuing_authority": "Issuing Authority",
    "issuing_country": "Issuing Country",
    "nationality": "Nationality",
    "document_number": "Document Number",
    "administrative_number": "Administrative Number",
    "gender": "Gender",
    "age_over_12": "Age Over 12",
    "age_over_14": "Age Over 14",
    "age_over_16": "Age Over 16",
    "age_over_21": "Age Over 21",
    "age_over_65": "Age Over 65",
    "age_in_years": "Age in Years",
    "age_birth_year": "Birth Year",
    "resident_address": "Residential Address",
    "resident_city": "City of Residence",
    "resident_postal_code": "Postal Code",
    "resident_state": "State/Province",
    "resident_country": "Country of Residence",
    "birth_place": "Place of Birth",
    "birth_city": "City of Birth",
    "birth_state": "State of Birth",
    "birth_country": "Country of Birth",
    "family_name_birth": "Family Name at Birth",
    "given_name_birth": "Given Name at Birth",
    "portrait": "Portrait",
}

ISSUING_AUTHORITY = "Ministry of Interior - Tunisia"


class PidClaims(BaseModel):
    """PID attributes per ARF: 8 mandatory fields plus optional ones."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["pid"] = "pid"

    family_name: str
    given_name: str
    birth_date: str
    age_over_18: bool
    issuance_date: str
    expiry_date: str
    issuing_authority: str
    issuing_country: str

    family_name_birth: Optional[str] = None
    given_name_birth: Optional[str] = None
    birth_place: Optional[str] = None
    birth_city: Optional[str] = None
    birth_state: Optional[str] = None
    birth_country: Optional[str] = None
    nationality: Optional[str] = None
    document_number: Optional[str] = None
    administrative_number: Optional[str] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    age_over_12: Optional[bool] = None
    age_over_14: Optional[bool] = None
    age_over_16: Optional[bool] = None
    age_over_21: Optional[bool] = None
    age_over_65: Optional[bool] = None
    age_in_years: Optional[int] = None
    age_birth_year: Optional[int] = None
    resident_address: Optional[str] = None
    resident_city: Optional[str] = None
    resident_postal_code: Optional[str] = None
    resident_state: Optional[str] = None
    resident_country: Optional[str] = None
    portrait: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _check_mandatory(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            missing = find_missing_fields(data, PID_MANDATORY_FIELDS)
            if missing:
                raise ValueError(f"Missing mandatory PID fields: {', '.join(missing)}")
        return data

    def disclosable(self) -> Dict[str, Any]:
        """Claims to place in the disclosure set, without unset optionals."""
        return self.model_dump(exclude={"kind"}, exclude_none=True)


def validate_pid_claims(claims: Mapping[str, Any]) -> Dict[str, Any]:
    missing = find_missing_fields(claims, PID_MANDATORY_FIELDS)
    return {"valid": not missing, "missing_fields": missing}


def create_demo_pid_claims() -> PidClaims:
    """PID for the demo holder "Ali Ben Salah"."""
    return PidClaims(
        family_name="Ben Salah",
        given_name="Ali",
        birth_date="1990-03-15",
        age_over_18=True,
        issuance_date="2025-01-15",
        expiry_date="2030-01-15",
        issuing_authority=ISSUING_AUTHORITY,
        issuing_country="TN",
        nationality="Tunisian",
        document_number="TN-12345678",
        gender="male",
        age_in_years=35,
        age_birth_year=1990,
        resident_city="Tunis",
        resident_country="TN",
        birth_city="Tunis",
        birth_country="TN",
    )


class NicRecord(BaseModel):
    """Tunisia NIC record as produced by the NIC verification flow."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    date_of_birth: str = Field(alias="dateOfBirth")
    nic_number: str = Field(alias="nicNumber")
    nationality: Optional[str] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


def _add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # 29 February
        return day.replace(year=day.year + years, day=28)


def map_tunisia_nic_to_pid(
    nic: Union[NicRecord, Mapping[str, Any]], today: Optional[date] = None
) -> PidClaims:
    """Map a Tunisia NIC record to PID claims.

    Age is the difference of calendar years only; month and day are ignored.
    """
    if not isinstance(nic, NicRecord):
        nic = NicRecord.model_validate(nic)
    today = today or date.today()

    birth_date = date.fromisoformat(nic.date_of_birth)
    age = today.year - birth_date.year

    return PidClaims(
        family_name=nic.last_name,
        given_name=nic.first_name,
        birth_date=nic.date_of_birth,
        age_over_18=age >= 18,
        issuance_date=today.isoformat(),
        expiry_date=_add_years(today, 5).isoformat(),
        issuing_authority=ISSUING_AUTHORITY,
        issuing_country="TN",
        nationality=nic.nationality or "Tunisian",
        document_number=nic.nic_number,
        gender=nic.gender,
        age_in_years=age,
        age_birth_year=birth_date.year,
        resident_city=nic.city,
        resident_country=nic.country or "TN",
        resident_address=nic.address,
    )
