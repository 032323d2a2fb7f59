"""Static catalog of consultation services offered by the clinic"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ServiceCatalogEntry:
    id: str
    name: str
    price: int  # Rupees
    description: str
    illustration: Optional[str] = None  # Asset reference for the service card

    @property
    def has_illustration(self) -> bool:
        return self.illustration is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "description": self.description,
            "illustration": self.illustration,
            "has_illustration": self.has_illustration,
        }


SERVICE_CATALOG: tuple[ServiceCatalogEntry, ...] = (
    ServiceCatalogEntry(
        id="general-physician",
        name="General Physician",
        price=150,
        description="Comprehensive general medical consultation and treatment",
        illustration="general-physician-bg.jpg",
    ),
    ServiceCatalogEntry(
        id="gynecology",
        name="Gynecology (Women's issues)",
        price=200,
        description="Specialized women's health and gynecological consultation",
        illustration="gynecology-bg.jpg",
    ),
    ServiceCatalogEntry(
        id="dermatology",
        name="Dermatology (Skin & Hair)",
        price=200,
        description="Expert skin and hair care consultation and treatment",
        illustration="dermatology-bg.jpg",
    ),
    ServiceCatalogEntry(
        id="psychiatric-counselling",
        name="Psychiatric Counselling",
        price=300,
        description="Professional mental health counseling and support",
        illustration="psychiatric-counselling-bg.jpg",
    ),
    ServiceCatalogEntry(
        id="medical-certificate",
        name="Medical / Fitness Certificate",
        price=200,
        description="Official medical and fitness certificates",
        illustration="medical-certificate-bg.jpg",
    ),
    ServiceCatalogEntry(
        id="certificate-prescription",
        name="Medical Certificate + Prescription",
        price=250,
        description="Complete medical assessment with prescription",
        illustration="medical-certificate-bg.jpg",
    ),
    ServiceCatalogEntry(
        id="follow-up",
        name="Free follow up for same issue",
        price=0,
        description="Complimentary follow-up consultation for the same medical issue",
    ),
)

_CATALOG_BY_ID = {entry.id: entry for entry in SERVICE_CATALOG}


def get_service(service_id: Optional[str]) -> Optional[ServiceCatalogEntry]:
    if not service_id:
        return None
    return _CATALOG_BY_ID.get(service_id)


def list_services() -> list[ServiceCatalogEntry]:
    return list(SERVICE_CATALOG)
