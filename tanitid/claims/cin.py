"""Tunisian CIN (Carte d'Identité Nationale) claims."""
from typing import Any, Dict, Literal, Mapping

from pydantic import BaseModel, ConfigDict, model_validator

from . import find_missing_fields

CIN_MANDATORY_FIELDS = [
    "cin_number",
    "nom",
    "prenom",
    "nom_ar",
    "prenom_ar",
    "date_naissance",
    "lieu_naissance",
    "gouvernorat_naissance",
    "sexe",
    "nationalite",
    "etat_civil",
    "nom_pere",
    "nom_mere",
    "adresse",
    "gouvernorat",
    "code_postal",
    "date_delivrance",
    "date_expiration",
    "autorite_delivrance",
]

CIN_FIELD_LABELS: Dict[str, str] = {
    "cin_number": "Numéro CIN",
    "nom": "Nom",
    "prenom": "Prénom",
    "nom_ar": "الاسم العائلي",
    "prenom_ar": "الاسم الشخصي",
    "date_naissance": "Date de Naissance",
    "lieu_naissance": "Lieu de Naissance",
    "gouvernorat_naissance": "Gouvernorat de Naissance",
    "sexe": "Sexe",
    "nationalite": "Nationalité",
    "etat_civil": "État Civil",
    "nom_pere": "Nom du Père",
    "nom_mere": "Nom de la Mère",
    "adresse": "Adresse",
    "gouvernorat": "Gouvernorat",
    "code_postal": "Code Postal",
    "date_delivrance": "Date de Délivrance",
    "date_expiration": "Date d'Expiration",
    "autorite_delivrance": "Autorité de Délivrance",
}


class CinClaims(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["cin"] = "cin"

    cin_number: str
    nom: str
    prenom: str
    nom_ar: str
    prenom_ar: str
    date_naissance: str
    lieu_naissance: str
    gouvernorat_naissance: str
    sexe: Literal["masculin", "féminin"]
    nationalite: str
    etat_civil: Literal["célibataire", "marié(e)", "divorcé(e)", "veuf(ve)"]
    nom_pere: str
    nom_mere: str
    adresse: str
    gouvernorat: str
    code_postal: str
    date_delivrance: str
    date_expiration: str
    autorite_delivrance: str

    @model_validator(mode="before")
    @classmethod
    def _check_mandatory(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            missing = find_missing_fields(data, CIN_MANDATORY_FIELDS)
            if missing:
                raise ValueError(f"Missing mandatory CIN fields: {', '.join(missing)}")
        return data

    def disclosable(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"kind"})


def validate_cin_claims(claims: Mapping[str, Any]) -> Dict[str, Any]:
    missing = find_missing_fields(claims, CIN_MANDATORY_FIELDS)
    return {"valid": not missing, "missing_fields": missing}


def create_demo_cin_claims() -> CinClaims:
    """CIN for "Ali Ben Salah", consistent with the demo PID."""
    return CinClaims(
        cin_number="09876543",
        nom="Ben Salah",
        prenom="Ali",
        nom_ar="بن صالح",
        prenom_ar="علي",
        date_naissance="1990-03-15",
        lieu_naissance="Tunis",
        gouvernorat_naissance="Tunis",
        sexe="masculin",
        nationalite="Tunisienne",
        etat_civil="célibataire",
        nom_pere="Mohamed Ben Salah",
        nom_mere="Fatma Trabelsi",
        adresse="12 Rue de la Liberté",
        gouvernorat="Tunis",
        code_postal="1000",
        date_delivrance="2025-01-15",
        date_expiration="2035-01-15",
        autorite_delivrance="Ministère de l'Intérieur",
    )
