from .car import CarBrand, CarComplectation, CarModel, CarVariant, car_variant_complectations
from .chat import (
    AppUser,
    Dialog,
    Message,
    MessageRole,
    ModerationStatus,
    ProviderLog,
    ProviderLogKind,
)
